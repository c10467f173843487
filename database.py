"""
Database access

MongoDB connection, generic document helpers and the video store used by the
request handlers. The connection is configured from DATABASE_URL and
DATABASE_NAME; when either is missing `db` stays None and the API reports the
database as unavailable.
"""

import logging
import math
import os
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from pydantic import BaseModel
from pymongo import MongoClient, ReturnDocument

from schemas import OwnerSummary, Video, VideoOut, VideoPage

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL")
DATABASE_NAME = os.getenv("DATABASE_NAME")

client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    client = MongoClient(DATABASE_URL)
    db = client[DATABASE_NAME]

VIDEO_COLLECTION = "video"
USER_COLLECTION = "user"

# Fields a listing may be sorted on; anything else is ignored
SORTABLE_FIELDS = {"title", "views", "duration", "created_at", "updated_at"}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(collection_name: str, data: Union[BaseModel, dict], database=None) -> str:
    """Insert a document with created/updated timestamps and return its id as a string."""
    database = database if database is not None else db
    if database is None:
        raise RuntimeError("Database not available")

    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)

    now = _utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now

    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(collection_name: str, filter_dict: Optional[dict] = None, limit: Optional[int] = None, database=None) -> List[dict]:
    """Fetch documents matching an equality/operator filter."""
    database = database if database is not None else db
    if database is None:
        raise RuntimeError("Database not available")

    cursor = database[collection_name].find(filter_dict or {})
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def build_match(query: Optional[str] = None, owner_id: Optional[ObjectId] = None) -> dict:
    """Case-insensitive substring match on title or description, optionally per owner."""
    match: Dict[str, Any] = {}
    if query:
        regex = {"$regex": re.escape(query), "$options": "i"}
        match["$or"] = [{"title": regex}, {"description": regex}]
    if owner_id is not None:
        match["owner"] = owner_id
    return match


def build_video_pipeline(
    query: Optional[str] = None,
    owner_id: Optional[ObjectId] = None,
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
) -> List[dict]:
    """Filter, join the owner and project the fields shown in listings."""
    pipeline = [
        {"$match": build_match(query, owner_id)},
        {
            "$lookup": {
                "from": USER_COLLECTION,
                "localField": "owner",
                "foreignField": "_id",
                "as": "owner",
            }
        },
        {"$unwind": "$owner"},
        {
            "$project": {
                "_id": 1,
                "title": 1,
                "description": 1,
                "thumbnail": 1,
                "views": 1,
                "duration": 1,
                "created_at": 1,
                "updated_at": 1,
                "is_published": 1,
                "owner": {
                    "_id": "$owner._id",
                    "name": "$owner.name",
                    "avatar": "$owner.avatar",
                },
            }
        },
    ]
    if sort_by in SORTABLE_FIELDS:
        direction = 1 if (sort_type or "").lower() == "asc" else -1
        # _id as tie-breaker keeps pages stable
        pipeline.append({"$sort": {sort_by: direction, "_id": 1}})
    return pipeline


def paginate_pipeline(pipeline: List[dict], page: int, limit: int) -> List[dict]:
    return pipeline + [
        {
            "$facet": {
                "docs": [{"$skip": (page - 1) * limit}, {"$limit": limit}],
                "total": [{"$count": "count"}],
            }
        }
    ]


def page_envelope(docs: List[VideoOut], total_docs: int, page: int, limit: int) -> VideoPage:
    total_pages = math.ceil(total_docs / limit) if total_docs else 0
    has_prev = page > 1
    has_next = page < total_pages
    return VideoPage(
        docs=docs,
        total_docs=total_docs,
        limit=limit,
        page=page,
        total_pages=total_pages,
        paging_counter=(page - 1) * limit + 1,
        has_prev_page=has_prev,
        has_next_page=has_next,
        prev_page=page - 1 if has_prev else None,
        next_page=page + 1 if has_next else None,
    )


def serialize_video(doc: dict) -> VideoOut:
    """Map a raw video document (plain or joined) to its API shape."""
    data = dict(doc)
    data["id"] = str(data.pop("_id"))
    data["description"] = data.get("description") or ""
    owner = data.get("owner")
    if isinstance(owner, dict):
        data["owner"] = OwnerSummary(
            id=str(owner.get("_id")),
            name=owner.get("name"),
            avatar=owner.get("avatar"),
        )
    elif owner is not None:
        data["owner"] = str(owner)
    return VideoOut(**data)


class VideoStore:
    """Queries and mutations on the video collection."""

    def __init__(self, database):
        self.db = database
        self.videos = database[VIDEO_COLLECTION]

    def paginate(
        self,
        query: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
        sort_by: Optional[str] = None,
        sort_type: Optional[str] = None,
        owner_id: Optional[ObjectId] = None,
    ) -> Optional[VideoPage]:
        pipeline = paginate_pipeline(
            build_video_pipeline(query, owner_id, sort_by, sort_type), page, limit
        )
        result = list(self.videos.aggregate(pipeline))
        if not result:
            return None
        facet = result[0]
        total = facet["total"][0]["count"] if facet.get("total") else 0
        docs = [serialize_video(d) for d in facet.get("docs", [])]
        return page_envelope(docs, total, page, limit)

    def create(self, video: Video) -> Optional[VideoOut]:
        inserted_id = create_document(VIDEO_COLLECTION, video, database=self.db)
        logger.info("Created video %s", inserted_id)
        return self.find_by_id(ObjectId(inserted_id))

    def find_by_id(self, video_id: ObjectId) -> Optional[VideoOut]:
        docs = get_documents(VIDEO_COLLECTION, {"_id": video_id}, limit=1, database=self.db)
        if not docs:
            return None
        return serialize_video(docs[0])

    def exists(self, video_id: ObjectId) -> bool:
        return self.videos.count_documents({"_id": video_id}, limit=1) > 0

    def update_fields(self, video_id: ObjectId, fields: dict) -> Optional[VideoOut]:
        doc = self.videos.find_one_and_update(
            {"_id": video_id},
            {"$set": {**fields, "updated_at": _utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        logger.info("Updated video %s (%s)", video_id, ", ".join(sorted(fields)))
        return serialize_video(doc)

    def toggle_published(self, video_id: ObjectId) -> Optional[VideoOut]:
        # Single update pipeline so the flag is read and negated server-side
        doc = self.videos.find_one_and_update(
            {"_id": video_id},
            [
                {
                    "$set": {
                        "is_published": {
                            "$cond": [{"$eq": ["$is_published", True]}, False, True]
                        },
                        "updated_at": "$$NOW",
                    }
                }
            ],
            return_document=ReturnDocument.AFTER,
        )
        if not doc:
            return None
        logger.info("Video %s is_published=%s", video_id, doc.get("is_published"))
        return serialize_video(doc)

    def delete(self, video_id: ObjectId) -> Optional[VideoOut]:
        doc = self.videos.find_one_and_delete({"_id": video_id})
        if not doc:
            return None
        logger.info("Deleted video %s", video_id)
        return serialize_video(doc)
