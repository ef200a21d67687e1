import uuid
import time
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient
from postgrest.exceptions import APIError

from larder.core.dependencies import get_ai_client
from larder.core.user_directory import UserDirectory
from larder.database.supabase_client import get_service_supabase, get_supabase
from larder.main import app
from larder.modules.auth.service import clear_auth_cache
from larder.modules.households.service import HouseholdService

# --- In-memory Supabase ---

TABLE_DEFAULTS = {
    "pantry_items": {"quantity": 1, "unit": None},
    "shopping_list_items": {"quantity": 1, "unit": None, "is_purchased": False},
    "household_invitations": {"status": "pending"},
    "recipes": {"creation_method": "manual", "updated_at": None},
    "households": {"updated_at": None},
}

UNIQUE_KEYS = {
    "households": lambda r: r["owner_id"],
    "user_households": lambda r: (r["household_id"], r["user_id"]),
    "household_invitations": lambda r: r["token"],
    "pantries": lambda r: r["household_id"],
    "shopping_lists": lambda r: r["household_id"],
    "pantry_items": lambda r: (r["pantry_id"], r["name"].lower()),
    "shopping_list_items": lambda r: (r["shopping_list_id"], r["name"].lower()),
}

# Tables keyed by a composite primary key carry no id column.
NO_ID_TABLES = {"user_households"}

CASCADES = {
    "households": [
        ("user_households", "household_id"),
        ("household_invitations", "household_id"),
        ("pantries", "household_id"),
        ("shopping_lists", "household_id"),
        ("recipes", "household_id"),
    ],
    "pantries": [("pantry_items", "pantry_id")],
    "shopping_lists": [("shopping_list_items", "shopping_list_id")],
}


def _comparable(value):
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return value
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return value


class FakeQuery:
    def __init__(self, db, table):
        self.db = db
        self.table = table
        self.op = "select"
        self.payload = None
        self.count_mode = None
        self.filters = []
        self.orders = []
        self._limit = None
        self._range = None

    def select(self, *columns, count=None):
        self.count_mode = count
        return self

    def insert(self, values):
        self.op, self.payload = "insert", values
        return self

    def update(self, values):
        self.op, self.payload = "update", values
        return self

    def delete(self):
        self.op = "delete"
        return self

    def eq(self, column, value):
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def neq(self, column, value):
        self.filters.append(lambda row: row.get(column) != value)
        return self

    def gt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _comparable(row[column]) > _comparable(value))
        return self

    def lt(self, column, value):
        self.filters.append(lambda row: row.get(column) is not None and _comparable(row[column]) < _comparable(value))
        return self

    def in_(self, column, values):
        values = list(values)
        self.filters.append(lambda row: row.get(column) in values)
        return self

    def order(self, column, desc=False):
        self.orders.append((column, desc))
        return self

    def limit(self, size):
        self._limit = size
        return self

    def range(self, start, end):
        self._range = (start, end)
        return self

    def _matching(self):
        return [row for row in self.db.tables[self.table] if all(f(row) for f in self.filters)]

    def execute(self):
        self.db.check_failure(self.table, self.op)
        if self.op == "insert":
            return SimpleNamespace(data=self.db.insert_rows(self.table, self.payload), count=None)
        if self.op == "update":
            rows = self._matching()
            for row in rows:
                row.update(self.payload)
            return SimpleNamespace(data=[dict(r) for r in rows], count=None)
        if self.op == "delete":
            rows = self._matching()
            self.db.delete_rows(self.table, rows)
            return SimpleNamespace(data=[dict(r) for r in rows], count=None)

        rows = self._matching()
        count = len(rows) if self.count_mode else None
        for column, desc in reversed(self.orders):
            rows.sort(key=lambda r: (r.get(column) is None, r.get(column) if r.get(column) is not None else ""), reverse=desc)
        if self._range is not None:
            rows = rows[self._range[0]:self._range[1] + 1]
        if self._limit is not None:
            rows = rows[:self._limit]
        return SimpleNamespace(data=[dict(r) for r in rows], count=count)


class FakeAdminAuth:
    def __init__(self, auth):
        self.auth = auth
        self.failing_ids = set()

    def get_user_by_id(self, user_id):
        if user_id in self.failing_ids or user_id not in self.auth.users:
            raise Exception(f"User not found: {user_id}")
        return SimpleNamespace(user=self.auth.users[user_id])

    def list_users(self, page=None, per_page=None):
        users = list(self.auth.users.values())
        if page and per_page:
            start = (page - 1) * per_page
            return users[start:start + per_page]
        return users

    def update_user_by_id(self, user_id, attributes):
        user = self.get_user_by_id(user_id).user
        if "password" in attributes:
            self.auth.passwords[user_id] = attributes["password"]
        return SimpleNamespace(user=user)


class FakeAuth:
    def __init__(self):
        self.users = {}
        self.passwords = {}
        self.tokens = {}
        self.reset_requests = []
        self.admin = FakeAdminAuth(self)

    def create_user(self, email, password="Secret123!"):
        now = datetime.now(timezone.utc).isoformat()
        user = SimpleNamespace(
            id=str(uuid.uuid4()),
            email=email,
            user_metadata={},
            app_metadata={},
            created_at=now,
            updated_at=now,
        )
        self.users[user.id] = user
        self.passwords[user.id] = password
        user.token = f"token-{user.id}"
        self.tokens[user.token] = user.id
        return user

    def get_user(self, jwt=None):
        if jwt not in self.tokens:
            raise Exception("invalid JWT")
        return SimpleNamespace(user=self.users[self.tokens[jwt]])

    def sign_up(self, credentials):
        email = credentials["email"].lower()
        if any(u.email.lower() == email for u in self.users.values()):
            raise Exception("User already registered")
        user = self.create_user(email, credentials["password"])
        return SimpleNamespace(user=user, session=None)

    def sign_in_with_password(self, credentials):
        email = credentials["email"].lower()
        user = next((u for u in self.users.values() if u.email.lower() == email), None)
        if user is None or self.passwords[user.id] != credentials["password"]:
            raise Exception("Invalid login credentials")
        session = SimpleNamespace(access_token=user.token, refresh_token=f"refresh-{user.id}")
        return SimpleNamespace(user=user, session=session)

    def sign_out(self):
        return None

    def reset_password_for_email(self, email, options=None):
        self.reset_requests.append((email, options))


class FakeSupabase:
    """Dict-backed stand-in for supabase.Client covering the query chains the services use."""

    def __init__(self):
        self.tables = {name: [] for name in (
            "households", "user_households", "household_invitations", "pantries",
            "pantry_items", "shopping_lists", "shopping_list_items", "recipes",
        )}
        self.auth = FakeAuth()
        self._failures = []
        self._epoch = datetime.now(timezone.utc)
        self._tick = 0

    def table(self, name):
        return FakeQuery(self, name)

    def create_user(self, email, password="Secret123!"):
        return self.auth.create_user(email, password)

    def fail(self, table, op, times=1, error=None):
        """Make the next ``times`` executions of ``op`` on ``table`` raise."""
        self._failures.append({"table": table, "op": op, "times": times, "error": error})

    def check_failure(self, table, op):
        for failure in self._failures:
            if failure["table"] == table and failure["op"] == op and failure["times"] > 0:
                failure["times"] -= 1
                raise failure["error"] or Exception(f"injected {op} failure on {table}")

    def _now(self):
        self._tick += 1
        return (self._epoch + timedelta(milliseconds=self._tick)).isoformat()

    def insert_rows(self, table, payload):
        batch = payload if isinstance(payload, list) else [payload]
        key = UNIQUE_KEYS.get(table)
        taken = {key(r) for r in self.tables[table]} if key else set()
        rows = []
        for values in batch:
            row = {**TABLE_DEFAULTS.get(table, {}), **values}
            if table not in NO_ID_TABLES:
                row.setdefault("id", str(uuid.uuid4()))
            row.setdefault("created_at", self._now())
            if key:
                if key(row) in taken:
                    raise APIError({
                        "message": f"duplicate key value violates unique constraint on {table}",
                        "code": "23505",
                        "hint": None,
                        "details": None,
                    })
                taken.add(key(row))
            rows.append(row)
        self.tables[table].extend(rows)
        return [dict(r) for r in rows]

    def delete_rows(self, table, rows):
        ids = {id(r) for r in rows}
        self.tables[table] = [r for r in self.tables[table] if id(r) not in ids]
        for child, column in CASCADES.get(table, []):
            parents = {r["id"] for r in rows}
            orphans = [r for r in self.tables[child] if r.get(column) in parents]
            if orphans:
                self.delete_rows(child, orphans)

    def rows(self, table, **filters):
        return [r for r in self.tables[table] if all(r.get(k) == v for k, v in filters.items())]


class FakeAIClient:
    """Returns queued recipe payloads (or raises queued errors) from generate_json."""

    def __init__(self, delay=0):
        self.responses = []
        self.calls = []
        self.delay = delay

    def queue(self, response):
        self.responses.append(response)

    def queue_recipe(self, **overrides):
        self.responses.append(sample_generated_recipe(**overrides))

    def generate_json(self, messages, response_format, model=None):
        self.calls.append({"messages": messages, "response_format": response_format})
        if self.delay:
            time.sleep(self.delay)
        response = self.responses.pop(0) if self.responses else sample_generated_recipe()
        if isinstance(response, Exception):
            raise response
        return response


def sample_generated_recipe(**overrides):
    recipe = {
        "title": "Tomato Pasta",
        "ingredients": [
            {"name": "pasta", "quantity": 200, "unit": "g"},
            {"name": "tomato", "quantity": 3, "unit": None},
        ],
        "instructions": "Boil the pasta. Cook the tomatoes into a sauce. Combine and serve.",
        "mealType": "dinner",
        "prepTime": 10,
        "cookTime": 20,
    }
    recipe.update(overrides)
    return recipe


# --- Fixtures ---

@pytest.fixture
def db():
    return FakeSupabase()


@pytest.fixture
def directory(db):
    return UserDirectory(db)


@pytest.fixture
def alice(db):
    return db.create_user("alice@example.com")


@pytest.fixture
def bob(db):
    return db.create_user("bob@example.com")


@pytest.fixture
def carol(db):
    return db.create_user("carol@example.com")


@pytest.fixture
def make_household(db, directory):
    def _make(user, name="Home"):
        return HouseholdService(db, directory).create_household(user.id, name)
    return _make


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def client(db, ai_client):
    """Test client with Supabase and AI overrides."""
    clear_auth_cache()
    app.dependency_overrides[get_supabase] = lambda: db
    app.dependency_overrides[get_service_supabase] = lambda: db
    app.dependency_overrides[get_ai_client] = lambda: ai_client
    yield TestClient(app, raise_server_exceptions=False)
    app.dependency_overrides.clear()
    clear_auth_cache()


@pytest.fixture
def auth_headers():
    def _headers(user):
        return {"Authorization": f"Bearer {user.token}"}
    return _headers
