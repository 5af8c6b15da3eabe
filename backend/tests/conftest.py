"""
BizFlow Pro - Test fixtures

FakeDatabase is an in-memory stand-in for the motor database handle:
same call shapes (find_one / find().sort().to_list() / update_one ...),
unique indexes raising pymongo DuplicateKeyError, and client sessions
whose transactions roll back every write when the block raises.

The `fake_db` fixture patches it into every module holding a `db` global.
"""

import asyncio
import copy
import importlib
import itertools
import sys
from pathlib import Path

import httpx
import pytest
from pymongo.errors import DuplicateKeyError

BACKEND_DIR = Path(__file__).resolve().parent.parent
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))


# ==================== QUERY MATCHING ====================

def _resolve(doc, path):
    """Values found at a dotted path; array elements are traversed"""
    current = [doc]
    for part in path.split("."):
        found = []
        for value in current:
            if isinstance(value, dict) and part in value:
                found.append(value[part])
            elif isinstance(value, list):
                found.extend(v[part] for v in value if isinstance(v, dict) and part in v)
        current = found
    return current


def _compare(values, op, arg):
    try:
        if op == "$gte":
            return any(v is not None and v >= arg for v in values)
        if op == "$gt":
            return any(v is not None and v > arg for v in values)
        if op == "$lte":
            return any(v is not None and v <= arg for v in values)
        if op == "$lt":
            return any(v is not None and v < arg for v in values)
    except TypeError:
        return False
    if op == "$in":
        return any(v in arg for v in values)
    if op == "$ne":
        return not _equals(values, arg)
    if op == "$exists":
        return bool(values) == bool(arg)
    if op == "$type":
        if arg == "string":
            return any(isinstance(v, str) for v in values)
        raise NotImplementedError(f"$type {arg}")
    raise NotImplementedError(op)


def _equals(values, expected):
    if not values:
        return expected is None
    for v in values:
        if v == expected:
            return True
        if isinstance(v, list) and expected in v:
            return True
    return False


def matches(doc, query):
    for key, cond in (query or {}).items():
        if key == "$or":
            if not any(matches(doc, q) for q in cond):
                return False
            continue
        values = _resolve(doc, key)
        if isinstance(cond, dict) and cond and all(k.startswith("$") for k in cond):
            if not all(_compare(values, op, arg) for op, arg in cond.items()):
                return False
        elif not _equals(values, cond):
            return False
    return True


def project(doc, projection):
    doc = copy.deepcopy(doc)
    if not projection:
        return doc
    included = [k for k, v in projection.items() if v and k != "_id"]
    if included:
        keep = {k: doc[k] for k in included if k in doc}
        if projection.get("_id", 1) and "_id" in doc:
            keep["_id"] = doc["_id"]
        return keep
    for key, v in projection.items():
        if not v:
            doc.pop(key, None)
    return doc


# ==================== RESULTS ====================

class InsertOneResult:
    def __init__(self, inserted_id):
        self.inserted_id = inserted_id


class UpdateResult:
    def __init__(self, matched_count, modified_count, upserted_id=None):
        self.matched_count = matched_count
        self.modified_count = modified_count
        self.upserted_id = upserted_id


class DeleteResult:
    def __init__(self, deleted_count):
        self.deleted_count = deleted_count


# ==================== COLLECTION ====================

class FakeCursor:
    def __init__(self, docs, projection):
        self._docs = docs
        self._projection = projection
        self._skip = 0
        self._limit = 0

    def sort(self, key, direction=1):
        keys = key if isinstance(key, list) else [(key, direction)]
        for field, d in reversed(keys):
            self._docs.sort(
                key=lambda doc: (doc.get(field) is None, doc.get(field)),
                reverse=d == -1
            )
        return self

    def skip(self, n):
        self._skip = n
        return self

    def limit(self, n):
        self._limit = n
        return self

    async def to_list(self, length=None):
        docs = self._docs[self._skip:]
        if self._limit:
            docs = docs[:self._limit]
        if length:
            docs = docs[:length]
        return [project(d, self._projection) for d in docs]


class FakeCollection:
    _ids = itertools.count(1)

    def __init__(self, database, name):
        self.database = database
        self.name = name
        self.docs = []
        self.unique_indexes = []  # [(fields, partial_filter)]

    # ---- helpers ----

    def _track(self, session):
        if self.database.in_transaction and session is None:
            self.database.unsessioned_writes.append(self.name)

    def _check_unique(self, candidate, ignore=None):
        for fields, partial in self.unique_indexes:
            if partial and not matches(candidate, partial):
                continue
            key = tuple(candidate.get(f) for f in fields)
            for other in self.docs:
                if other is ignore:
                    continue
                if partial and not matches(other, partial):
                    continue
                if tuple(other.get(f) for f in fields) == key:
                    raise DuplicateKeyError(
                        f"E11000 duplicate key error collection: {self.name} index: {fields} dup key: {key}",
                        code=11000
                    )

    def seed(self, *docs):
        """Sync insert for fixtures"""
        for doc in docs:
            self.docs.append(copy.deepcopy(doc))

    def add_unique_index(self, *fields, partial=None):
        self.unique_indexes.append((list(fields), partial))

    # ---- motor API ----

    async def create_index(self, keys, unique=False, partialFilterExpression=None, **kwargs):
        fields = [keys] if isinstance(keys, str) else [k for k, _ in keys]
        if unique:
            self.add_unique_index(*fields, partial=partialFilterExpression)
        return "_".join(fields)

    async def find_one(self, query=None, projection=None, session=None):
        for doc in self.docs:
            if matches(doc, query):
                return project(doc, projection)
        return None

    def find(self, query=None, projection=None, session=None):
        return FakeCursor([d for d in self.docs if matches(d, query)], projection)

    async def count_documents(self, query=None, session=None):
        return sum(1 for d in self.docs if matches(d, query))

    async def distinct(self, key, query=None, session=None):
        values = []
        for d in self.docs:
            if matches(d, query) and key in d and d[key] not in values:
                values.append(d[key])
        return values

    async def insert_one(self, doc, session=None):
        self._track(session)
        doc.setdefault("_id", f"oid-{next(self._ids)}")
        self._check_unique(doc)
        self.docs.append(copy.deepcopy(doc))
        return InsertOneResult(doc["_id"])

    def _apply(self, doc, update, inserting=False):
        for key, value in (update.get("$set") or {}).items():
            doc[key] = copy.deepcopy(value)
        for key, value in (update.get("$inc") or {}).items():
            doc[key] = doc.get(key, 0) + value
        for key, value in (update.get("$addToSet") or {}).items():
            current = doc.setdefault(key, [])
            if value not in current:
                current.append(copy.deepcopy(value))
        if inserting:
            for key, value in (update.get("$setOnInsert") or {}).items():
                doc[key] = copy.deepcopy(value)

    async def update_one(self, query, update, upsert=False, session=None):
        self._track(session)
        for doc in self.docs:
            if matches(doc, query):
                updated = copy.deepcopy(doc)
                self._apply(updated, update)
                self._check_unique(updated, ignore=doc)
                modified = updated != doc
                doc.clear()
                doc.update(updated)
                return UpdateResult(1, int(modified))

        if not upsert:
            return UpdateResult(0, 0)

        new_doc = {k: v for k, v in query.items() if not k.startswith("$") and not isinstance(v, dict)}
        self._apply(new_doc, update, inserting=True)
        result = await self.insert_one(new_doc, session=session)
        return UpdateResult(0, 0, upserted_id=result.inserted_id)

    async def update_many(self, query, update, session=None):
        self._track(session)
        count = 0
        for doc in self.docs:
            if matches(doc, query):
                self._apply(doc, update)
                count += 1
        return UpdateResult(count, count)

    async def delete_one(self, query, session=None):
        self._track(session)
        for i, doc in enumerate(self.docs):
            if matches(doc, query):
                del self.docs[i]
                return DeleteResult(1)
        return DeleteResult(0)

    async def delete_many(self, query, session=None):
        self._track(session)
        before = len(self.docs)
        self.docs = [d for d in self.docs if not matches(d, query)]
        return DeleteResult(before - len(self.docs))


# ==================== SESSIONS ====================

class FakeTransaction:
    def __init__(self, database):
        self.database = database
        self._snapshot = None

    async def __aenter__(self):
        self._snapshot = {name: copy.deepcopy(c.docs) for name, c in self.database.collections.items()}
        self.database.in_transaction = True
        self.database.transactions_started += 1
        return self

    async def __aexit__(self, exc_type, exc, tb):
        self.database.in_transaction = False
        if exc_type is not None:
            for name, collection in self.database.collections.items():
                collection.docs = self._snapshot.get(name, [])
            self.database.transactions_aborted += 1
        else:
            self.database.transactions_committed += 1
        return False


class FakeSession:
    def __init__(self, database):
        self.database = database

    def start_transaction(self):
        return FakeTransaction(self.database)

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeClient:
    def __init__(self, database):
        self.database = database

    async def start_session(self):
        return FakeSession(self.database)

    def close(self):
        pass


class FakeDatabase:
    def __init__(self):
        self.collections = {}
        self.client = FakeClient(self)
        self.in_transaction = False
        self.unsessioned_writes = []
        self.transactions_started = 0
        self.transactions_committed = 0
        self.transactions_aborted = 0

    def __getattr__(self, name):
        if name.startswith("_"):
            raise AttributeError(name)
        return self[name]

    def __getitem__(self, name):
        if name not in self.collections:
            self.collections[name] = FakeCollection(self, name)
        return self.collections[name]


# ==================== FIXTURES ====================

DB_MODULES = [
    "config",
    "services.event_logger",
    "services.dashboard",
    "services.products",
    "services.contacts",
    "services.webhooks",
    "services.automation",
    "services.orders",
    "services.pipelines",
    "services.tasks",
    "services.settings",
    "services.purchasing",
    "services.jobs",
    "services.forms",
    "services.conversations",
    "routes.auth",
    "routes.event_log",
    "server",
]

TENANT_ID = "tenant-1"
OTHER_TENANT_ID = "tenant-2"


@pytest.fixture
def fake_db(monkeypatch):
    """Fresh in-memory database patched into every module with a db global"""
    database = FakeDatabase()
    database.contacts.add_unique_index("tenant_id", "email")
    database.opportunity_field_values.add_unique_index("opportunity_id", "field_id")
    database.orders.add_unique_index(
        "tenant_id", "idempotency_key", partial={"idempotency_key": {"$type": "string"}}
    )
    database.purchase_orders.add_unique_index("tenant_id", "number")
    database.conversations.add_unique_index("tenant_id", "contact_id", "channel")
    database.pipelines.add_unique_index(
        "public_form_slug", partial={"public_form_slug": {"$type": "string"}}
    )

    for name in DB_MODULES:
        module = importlib.import_module(name)
        monkeypatch.setattr(module, "db", database)

    from services.dashboard import clear_cache
    clear_cache()
    yield database
    clear_cache()


@pytest.fixture
def sent_emails(monkeypatch):
    """Records emails instead of calling SendGrid"""
    from email_service import email_service
    sent = []

    def send_email(to_email, subject, html_content):
        sent.append({"to": to_email, "subject": subject, "html": html_content})
        return True

    monkeypatch.setattr(email_service, "send_email", send_email)
    return sent


@pytest.fixture(autouse=True)
def webhook_calls(monkeypatch):
    """
    Replaces the webhook dispatcher with one using httpx.MockTransport.

    Returns a recorder: .requests (list of httpx.Request), .responses
    (url -> status code or exception instance), .dispatcher
    """
    from services import webhooks

    class Recorder:
        def __init__(self):
            self.requests = []
            self.responses = {}

        def handler(self, request):
            self.requests.append(request)
            outcome = self.responses.get(str(request.url), 200)
            if isinstance(outcome, Exception):
                raise outcome
            return httpx.Response(outcome, json={"ok": outcome < 400})

    recorder = Recorder()
    recorder.dispatcher = webhooks.WebhookDispatcher(
        max_concurrency=4, timeout=2, transport=httpx.MockTransport(recorder.handler)
    )
    monkeypatch.setattr(webhooks, "dispatcher", recorder.dispatcher)
    return recorder


@pytest.fixture
def seed_product(fake_db):
    def _seed(product_id="P1", name="Widget", price=25.0, stock=10, tenant_id=TENANT_ID):
        fake_db.products.seed({
            "id": product_id,
            "tenant_id": tenant_id,
            "name": name,
            "sku": "",
            "price": price,
            "stock": stock,
            "created_at": "2026-01-01T00:00:00+00:00",
            "updated_at": "2026-01-01T00:00:00+00:00",
        })
    return _seed


@pytest.fixture
def yielding_reads(monkeypatch):
    """
    Makes find_one of a collection hand control back to the event loop after
    reading, as a driver round-trip does, so gathered coroutines interleave.
    """
    def _patch(collection):
        original_find_one = collection.find_one

        async def find_one(query=None, projection=None, session=None):
            doc = await original_find_one(query, projection, session)
            await asyncio.sleep(0)
            return doc

        monkeypatch.setattr(collection, "find_one", find_one)

    return _patch
