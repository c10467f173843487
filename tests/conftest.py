# tests/conftest.py
"""Shared fixtures: in-memory video store and media uploader behind the API."""

import os
from datetime import datetime, timezone

import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

import media
from database import SORTABLE_FIELDS, page_envelope, serialize_video
from main import app, get_store, get_uploader
from media import UploadResult

LISTING_FIELDS = (
    "_id", "title", "description", "thumbnail", "views", "duration",
    "created_at", "updated_at", "is_published",
)


class FakeVideoStore:
    """Dict-backed stand-in for VideoStore with the same method surface."""

    def __init__(self):
        self.videos = {}
        self.users = {}
        self.calls = []

    def add_user(self, name, avatar=None):
        _id = ObjectId()
        self.users[_id] = {"_id": _id, "name": name, "avatar": avatar}
        return _id

    def insert(self, **fields):
        now = datetime.now(timezone.utc)
        doc = {
            "_id": ObjectId(),
            "description": "",
            "video_file": None,
            "thumbnail": None,
            "duration": None,
            "views": 0,
            "is_published": True,
            "created_at": now,
            "updated_at": now,
        }
        doc.update(fields)
        self.videos[doc["_id"]] = doc
        return doc["_id"]

    def paginate(self, query=None, page=1, limit=10, sort_by=None, sort_type=None, owner_id=None):
        self.calls.append("paginate")
        needle = (query or "").lower()
        rows = []
        for doc in self.videos.values():
            text = (doc.get("title") or "").lower(), (doc.get("description") or "").lower()
            if needle and not any(needle in t for t in text):
                continue
            if owner_id is not None and doc.get("owner") != owner_id:
                continue
            owner = self.users.get(doc.get("owner"))
            if owner is None:
                continue
            row = {k: doc.get(k) for k in LISTING_FIELDS}
            row["owner"] = dict(owner)
            rows.append(row)
        if sort_by in SORTABLE_FIELDS:
            rows.sort(key=lambda d: d[sort_by], reverse=(sort_type or "").lower() != "asc")
        start = (page - 1) * limit
        docs = [serialize_video(d) for d in rows[start:start + limit]]
        return page_envelope(docs, len(rows), page, limit)

    def create(self, video):
        self.calls.append("create")
        _id = self.insert(**video.model_dump())
        return serialize_video(self.videos[_id])

    def find_by_id(self, video_id):
        self.calls.append("find_by_id")
        doc = self.videos.get(video_id)
        return serialize_video(doc) if doc else None

    def exists(self, video_id):
        self.calls.append("exists")
        return video_id in self.videos

    def update_fields(self, video_id, fields):
        self.calls.append("update_fields")
        doc = self.videos.get(video_id)
        if doc is None:
            return None
        doc.update(fields)
        doc["updated_at"] = datetime.now(timezone.utc)
        return serialize_video(doc)

    def toggle_published(self, video_id):
        self.calls.append("toggle_published")
        doc = self.videos.get(video_id)
        if doc is None:
            return None
        doc["is_published"] = not doc.get("is_published") is True
        return serialize_video(doc)

    def delete(self, video_id):
        self.calls.append("delete")
        doc = self.videos.pop(video_id, None)
        return serialize_video(doc) if doc else None


class FakeUploader:
    """Consumes spooled files like MediaUploader and returns fake hosted URLs."""

    def __init__(self):
        self.uploaded = []
        self.failing = set()

    def upload(self, local_path):
        if not local_path:
            return None
        ext = os.path.splitext(local_path)[1]
        with open(local_path, "rb") as f:
            content = f.read()
        os.remove(local_path)
        self.uploaded.append((ext, content))
        if ext in self.failing:
            return None
        return UploadResult(
            secure_url=f"https://media.example.com/{len(self.uploaded)}{ext}",
            duration=42.0 if ext == ".mp4" else None,
        )


@pytest.fixture
def store():
    return FakeVideoStore()


@pytest.fixture
def uploader():
    return FakeUploader()


@pytest.fixture
def owner_id(store):
    return store.add_user("Ada", avatar="https://media.example.com/ada.png")


@pytest.fixture
def auth_headers(owner_id):
    return {"X-User-Id": str(owner_id)}


@pytest.fixture
def media_files():
    return {
        "video_file": ("intro.mp4", b"\x00\x00video", "video/mp4"),
        "thumbnail": ("intro.jpg", b"\xff\xd8thumb", "image/jpeg"),
    }


@pytest.fixture
def client(store, uploader, tmp_path, monkeypatch):
    """TestClient with the store and uploader swapped for in-memory fakes."""
    monkeypatch.setattr(media, "UPLOAD_DIR", str(tmp_path / "uploads"))
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_uploader] = lambda: uploader
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()
