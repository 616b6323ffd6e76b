"""
POSTUREFIT Firebase Database Initialization

Initializes Firebase Admin SDK for Firestore access.
Supports mock mode when credentials are unavailable.
"""

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, firestore

from core.config import settings

# Configure logging
logger = logging.getLogger(__name__)

# Global Firestore client
_db: Optional[firestore.Client] = None
_mock_db: Optional["MockFirestoreClient"] = None
_mock_mode: bool = False


def init_firebase() -> bool:
    """
    Initialize Firebase Admin SDK.

    Returns:
        bool: True if connected successfully, False if running in mock mode.
    """
    global _db, _mock_mode

    # Already initialized?
    if _db is not None:
        return not _mock_mode

    cred_path = Path(__file__).parent.parent / settings.FIREBASE_CREDENTIALS_PATH

    if not cred_path.exists():
        logger.warning(
            f"⚠️ Firebase credentials not found at '{cred_path}'. "
            "Running in MOCK MODE - results will be kept in memory."
        )
        _mock_mode = True
        return False

    try:
        cred = credentials.Certificate(str(cred_path))

        # Check if already initialized (happens during hot reload)
        if not firebase_admin._apps:
            firebase_admin.initialize_app(cred, {
                'projectId': settings.FIREBASE_PROJECT_ID,
            })
            logger.info(f"🔥 Firebase Admin SDK initialized for project: {settings.FIREBASE_PROJECT_ID}")

        _db = firestore.client()
        logger.info("✅ Connected to Firestore successfully!")
        return True

    except Exception as e:
        logger.error(f"❌ Failed to initialize Firebase: {e}")
        logger.warning("Running in MOCK MODE - results will be kept in memory.")
        _mock_mode = True
        return False


def get_db() -> Optional[firestore.Client]:
    """
    Get Firestore database client.

    Returns:
        Firestore client or None if in mock mode.
    """
    if _db is None and not _mock_mode:
        init_firebase()

    return _db


def is_mock_mode() -> bool:
    """Check if running in mock mode (no Firebase connection)."""
    return _mock_mode


# ============================================
# Mock Database for Development/Testing
# ============================================

class MockFirestoreClient:
    """
    Mock Firestore client for development without Firebase.
    Stores data in memory.
    """

    def __init__(self):
        self._collections: Dict[str, "MockCollection"] = {}
        logger.info("🧪 MockFirestoreClient initialized (in-memory storage)")

    def collection(self, name: str) -> "MockCollection":
        if name not in self._collections:
            self._collections[name] = MockCollection(name)
        return self._collections[name]


class MockQuery:
    """Ordered/limited view over a mock collection."""

    def __init__(self, documents: List["MockDocument"]):
        self._documents = documents

    def order_by(self, field: str, direction: str = "ASCENDING") -> "MockQuery":
        reverse = direction == firestore.Query.DESCENDING
        ordered = sorted(self._documents, key=lambda d: d.to_dict().get(field) or "", reverse=reverse)
        return MockQuery(ordered)

    def where(self, field: str, op: str, value: Any) -> "MockQuery":
        if op != "==":
            raise ValueError(f"MockQuery only supports '==' filters, got '{op}'")
        return MockQuery([d for d in self._documents if d.to_dict().get(field) == value])

    def limit(self, count: int) -> "MockQuery":
        return MockQuery(self._documents[:count])

    def stream(self):
        return iter(self._documents)


class MockCollection:
    """Mock Firestore collection."""

    def __init__(self, name: str):
        self.name = name
        self._documents: Dict[str, "MockDocument"] = {}

    def document(self, doc_id: str = None) -> "MockDocument":
        if doc_id is None:
            doc_id = f"mock_{len(self._documents) + 1}"
        if doc_id not in self._documents:
            self._documents[doc_id] = MockDocument(doc_id, self)
        return self._documents[doc_id]

    def add(self, data: dict):
        doc = self.document()
        doc.set(data)
        return (None, doc)

    def _query(self) -> MockQuery:
        return MockQuery([d for d in self._documents.values() if d.exists])

    def order_by(self, field: str, direction: str = "ASCENDING") -> MockQuery:
        return self._query().order_by(field, direction)

    def where(self, field: str, op: str, value: Any) -> MockQuery:
        return self._query().where(field, op, value)

    def stream(self):
        return self._query().stream()


class MockDocument:
    """Mock Firestore document."""

    def __init__(self, doc_id: str, collection: MockCollection):
        self.id = doc_id
        self._collection = collection
        self._data: dict = {}
        self.exists = False

    def set(self, data: dict, merge: bool = False):
        if merge:
            self._data.update(data)
        else:
            self._data = data.copy()
        self.exists = True

    def get(self):
        return self

    def to_dict(self):
        return self._data.copy()


def get_mock_db() -> MockFirestoreClient:
    """Get the shared in-memory mock client."""
    global _mock_db
    if _mock_db is None:
        _mock_db = MockFirestoreClient()
    return _mock_db


# ============================================
# Database Helper Functions
# ============================================

def get_database():
    """
    Get database client (real or mock).
    Use this in your services to automatically handle mock mode.
    """
    db = get_db()
    if db is None:
        return get_mock_db()
    return db


class FirestoreResultStore:
    """Exercise results in the Firestore ``exercise_results`` collection."""

    def __init__(self, client=None, collection: str = None):
        self.client = client or get_database()
        self.collection_name = collection or settings.RESULTS_COLLECTION

    def save(self, record: Dict[str, Any]) -> Dict[str, Any]:
        _, doc = self.client.collection(self.collection_name).add(record)
        logger.info(f"💾 Saved result for '{record.get('exerciseId')}' to Firestore ({doc.id})")
        return record

    def list(self, limit: Optional[int] = None, exercise_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Stored results, newest first."""
        query = self.client.collection(self.collection_name)
        if exercise_id:
            query = query.where("exerciseId", "==", exercise_id)
        query = query.order_by("timestamp", direction=firestore.Query.DESCENDING)
        query = query.limit(limit or settings.RESULT_HISTORY_LIMIT)
        return [doc.to_dict() for doc in query.stream()]
