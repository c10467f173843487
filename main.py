import logging
import os
from typing import Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, File, Form, Query, UploadFile
from fastapi.middleware.cors import CORSMiddleware

import database
from auth import GatewayIdentityMiddleware, get_current_user
from database import VideoStore
from media import MediaUploader, cloudinary_configured, configure_cloudinary, has_file, save_upload
from responses import ApiError, api_response, register_exception_handlers
from schemas import CurrentUser, Video

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="Video backend")

app.add_middleware(
    CORSMiddleware,
    allow_origins=[o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",")],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(GatewayIdentityMiddleware)
register_exception_handlers(app)

configure_cloudinary()

MAX_PAGE = 10_000
MAX_LIMIT = 100


def get_store() -> VideoStore:
    if database.db is None:
        raise ApiError(503, "Database not available")
    return VideoStore(database.db)


def get_uploader() -> MediaUploader:
    return MediaUploader()


def parse_video_id(video_id: str) -> ObjectId:
    """Path dependency; runs before the store so malformed ids never reach it."""
    if not ObjectId.is_valid(video_id):
        raise ApiError(400, "Invalid video ID")
    return ObjectId(video_id)


def require_user(user: Optional[CurrentUser]) -> CurrentUser:
    if user is None or not user.id:
        raise ApiError(401, "User is not authenticated")
    # Owners are joined on ObjectId; any other id would never list
    if not ObjectId.is_valid(user.id):
        raise ApiError(401, "User is not authenticated")
    return user


@app.get("/")
def read_root():
    return {"message": "Video backend running"}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "media_host": "✅ Configured" if cloudinary_configured() else "❌ Not Configured",
        "connection_status": "Not Connected",
        "collections": []
    }
    db = database.db
    if db is not None:
        response["database"] = "✅ Available"
        response["connection_status"] = "Connected"
        try:
            collections = db.list_collection_names()
            response["collections"] = collections[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"
    return response


@app.get("/api/videos")
def list_videos(
    query: Optional[str] = None,
    page: int = Query(1, ge=1, le=MAX_PAGE),
    limit: int = Query(10, ge=1, le=MAX_LIMIT),
    sort_by: Optional[str] = None,
    sort_type: Optional[str] = None,
    user_id: Optional[str] = None,
    store: VideoStore = Depends(get_store),
):
    """List videos, optionally searching title/description, one page at a time."""
    owner_id = None
    if user_id:
        if not ObjectId.is_valid(user_id):
            raise ApiError(400, "Invalid user ID")
        owner_id = ObjectId(user_id)

    videos = store.paginate(
        query=query,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_type=sort_type,
        owner_id=owner_id,
    )
    if not videos:
        raise ApiError(404, "No videos found")
    return api_response(200, videos, "Videos fetched")


@app.post("/api/videos")
def publish_video(
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    video_file: Optional[UploadFile] = File(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: Optional[CurrentUser] = Depends(get_current_user),
    store: VideoStore = Depends(get_store),
    uploader: MediaUploader = Depends(get_uploader),
):
    """
    Upload the video and its thumbnail to the media host and store the record.

    The video is published immediately and owned by the caller.
    """
    if not title:
        raise ApiError(400, "Title is required")
    user = require_user(user)

    # A request carrying only one of the two files is still accepted
    if not has_file(video_file) and not has_file(thumbnail):
        raise ApiError(400, "Video file is required")

    uploaded_video = uploader.upload(save_upload(video_file))
    uploaded_thumbnail = uploader.upload(save_upload(thumbnail))

    if not uploaded_video and not uploaded_thumbnail:
        raise ApiError(400, "Video file and thumbnail is required")

    video = store.create(
        Video(
            title=title,
            description=description or "",
            video_file=uploaded_video.secure_url if uploaded_video else None,
            thumbnail=uploaded_thumbnail.secure_url if uploaded_thumbnail else None,
            duration=uploaded_video.duration if uploaded_video else None,
            is_published=True,
            owner=ObjectId(user.id),
        )
    )
    if not video:
        raise ApiError(400, "Video cannot be created")
    return api_response(201, video, "Video created")


@app.get("/api/videos/{video_id}")
def get_video(_id: ObjectId = Depends(parse_video_id), store: VideoStore = Depends(get_store)):
    video = store.find_by_id(_id)
    if not video:
        raise ApiError(404, "Video not found")
    return api_response(200, video, "Video fetched")


@app.patch("/api/videos/{video_id}")
def update_video(
    _id: ObjectId = Depends(parse_video_id),
    title: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    is_published: Optional[bool] = Form(None),
    thumbnail: Optional[UploadFile] = File(None),
    user: Optional[CurrentUser] = Depends(get_current_user),
    store: VideoStore = Depends(get_store),
    uploader: MediaUploader = Depends(get_uploader),
):
    """Replace the thumbnail and any metadata fields sent with it."""
    require_user(user)

    if not store.exists(_id):
        raise ApiError(404, "Video not found")

    if not has_file(thumbnail):
        raise ApiError(400, "Thumbnail file is required")

    uploaded_thumbnail = uploader.upload(save_upload(thumbnail))
    if not uploaded_thumbnail:
        raise ApiError(400, "Thumbnail upload failed")

    fields = {"thumbnail": uploaded_thumbnail.secure_url}
    for name, value in (("title", title), ("description", description), ("is_published", is_published)):
        if value is not None:
            fields[name] = value

    video = store.update_fields(_id, fields)
    if not video:
        raise ApiError(400, "Video cannot be updated")
    return api_response(200, video, "Video updated")


@app.delete("/api/videos/{video_id}")
def delete_video(
    _id: ObjectId = Depends(parse_video_id),
    user: Optional[CurrentUser] = Depends(get_current_user),
    store: VideoStore = Depends(get_store),
):
    require_user(user)

    if not store.exists(_id):
        raise ApiError(404, "Video not found")

    if not store.delete(_id):
        raise ApiError(400, "Video cannot be deleted")
    return api_response(200, None, "Video deleted")


@app.patch("/api/videos/toggle/publish/{video_id}")
def toggle_publish_status(
    _id: ObjectId = Depends(parse_video_id),
    user: Optional[CurrentUser] = Depends(get_current_user),
    store: VideoStore = Depends(get_store),
):
    """Flip is_published. Unexpected failures surface as a plain 500."""
    try:
        require_user(user)

        if not store.exists(_id):
            raise ApiError(404, "Video not found")

        video = store.toggle_published(_id)
        if not video:
            raise ApiError(400, "Video cannot be updated")
    except ApiError:
        raise
    except Exception:
        logger.exception("Toggling publish status of video %s failed", _id)
        raise ApiError(500, "Internal server error while video toggle publish")
    return api_response(200, video, "Video updated")


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
