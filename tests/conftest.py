"""Shared fixtures: fake psycopg2 connections and a fake psql."""

import subprocess

import psycopg2
import pytest

from storage_loader import executors
from storage_loader.config import Target


class FakeCursor:
    def __init__(self, conn):
        self.conn = conn

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        return False

    def execute(self, query):
        self.conn.submitted.append(query)
        error = self.conn.errors.get(query)
        if error is not None:
            raise error
        self.conn.executed.append(query)


class FakeConnection:
    def __init__(self, errors):
        self.errors = errors
        self.submitted = []
        self.executed = []
        self.autocommit = False
        self.closed = False

    def cursor(self):
        return FakeCursor(self)

    def close(self):
        self.closed = True


class FakeDatabase:
    """Stands in for psycopg2.connect and records every connection made."""

    def __init__(self):
        self.connections = []
        self.errors = {}
        self.connect_error = None
        self.connect_kwargs = []

    def fail_on(self, statement, error):
        self.errors[statement] = error

    def connect(self, **kwargs):
        self.connect_kwargs.append(kwargs)
        if self.connect_error is not None:
            raise self.connect_error
        conn = FakeConnection(self.errors)
        self.connections.append(conn)
        return conn

    @property
    def submitted(self):
        return [q for conn in self.connections for q in conn.submitted]


class FakePsql:
    """Stands in for subprocess.run when piping files through psql."""

    def __init__(self):
        self.calls = []
        self.returncodes = {}

    def fail_on(self, path, returncode=1, stderr=b"ERROR:  invalid input syntax"):
        self.returncodes[path] = (returncode, stderr)

    def __call__(self, cmd, stdin=None, capture_output=False, env=None, **kwargs):
        path = stdin.name
        self.calls.append({"cmd": cmd, "input": stdin.read(), "env": env, "path": path})
        returncode, stderr = self.returncodes.get(path, (0, b""))
        return subprocess.CompletedProcess(cmd, returncode, stdout=b"COPY 1\n", stderr=stderr)


@pytest.fixture
def database(monkeypatch):
    db = FakeDatabase()
    monkeypatch.setattr(executors.psycopg2, "connect", db.connect)
    return db


@pytest.fixture
def psql(monkeypatch):
    fake = FakePsql()
    monkeypatch.setattr(executors.subprocess, "run", fake)
    return fake


@pytest.fixture
def target():
    return Target(
        name="Local PostgreSQL",
        host="localhost",
        port=5432,
        database="snowplow",
        username="loader",
        password="s3cret",
        table="events",
    )


@pytest.fixture
def rds_target():
    return Target(
        name="RDS PostgreSQL",
        host="snowplow.abc123.eu-west-1.rds.amazonaws.com",
        port=5432,
        database="snowplow",
        username="loader",
        password="s3cret",
        table="atomic.events",
    )


@pytest.fixture
def events_dir(tmp_path):
    root = tmp_path / "events"
    root.mkdir()
    (root / "part-00000").write_bytes(b"app\t1\n")
    (root / "part-00001").write_bytes(b"app\t2\n")
    return root


@pytest.fixture
def constraint_violation():
    return psycopg2.IntegrityError('duplicate key value violates unique constraint "events_pkey"')
