"""FastAPIアプリケーション。

フラットファイル JSON バックエンド（categories / products / cart / carousel）。
クライアントから見た契約:

- GET    /{resource}            → 配列。?id=X なら1件（なければ 404）
- POST   /{resource}            → 作成したレコード（IDはサーバ採番）。検証失敗は 400
- PUT    /{resource}            → 更新後のレコード。id 不明なら 404
- DELETE /{resource}?id=X       → {success, message}。なければ 404
- POST   /upload                → multipart の image を保存し {success, imagePath}
"""

import logging
import time
from pathlib import Path
from typing import Annotated, Any

from fastapi import Body, Depends, FastAPI, HTTPException, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, field_validator

from storefront.catalog.normalizer import ids_equal, normalize_parent
from storefront.config import get_settings
from storefront.dependencies import get_resource_store
from storefront.interfaces.resource_store import RESOURCES, ResourceStoreInterface
from storefront.logging_setup import setup_logging

_settings = get_settings()
setup_logging(_settings.log_level, _settings.log_format)
logger = logging.getLogger(__name__)

StoreDep = Annotated[ResourceStoreInterface, Depends(get_resource_store)]

app = FastAPI(
    title="ストアフロント フラットファイル API",
    version="0.1.0",
)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    """検証エラーは FastAPI 既定の 422 ではなく 400 で返す。"""
    messages = [str(err.get("msg", "")) for err in exc.errors()]
    return JSONResponse(status_code=400, content={"error": "; ".join(messages)})


# ---------- Pydantic モデル ----------


RecordId = str | int


class CategoryCreateRequest(BaseModel):
    """POST /categories のリクエストボディ。"""

    name: str
    parentId: RecordId | None = None

    @field_validator("name", mode="after")
    @classmethod
    def name_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("category name is required")
        return v


class CategoryUpdateRequest(CategoryCreateRequest):
    """PUT /categories のリクエストボディ。"""

    id: RecordId


# ---------- ヘルパー ----------


def _ensure_resource(resource: str) -> None:
    if resource not in RESOURCES:
        raise HTTPException(status_code=404, detail=f"Unknown resource: {resource}")


def _parent_param(value: RecordId | None) -> RecordId | None:
    """"", "null", 0 などのルート参照を null に揃える。"""
    if normalize_parent(value) is None:
        return None
    return value


# ---------- エンドポイント ----------


@app.get("/api/health")
async def health_check():
    """ヘルスチェック。"""
    return {"status": "ok"}


# ---------- カテゴリ ----------


@app.get("/categories")
async def list_categories(
    store: StoreDep,
    id: str | None = None,
    mainCategories: str | None = None,
    parent: str | None = None,
):
    """カテゴリ一覧。id / mainCategories / parent で絞り込める。"""
    if id is not None:
        category = store.get_record("categories", id)
        if category is None:
            raise HTTPException(status_code=404, detail="Category not found")
        return category
    categories = store.list_records("categories")
    if mainCategories == "true":
        return [c for c in categories if normalize_parent(c.get("parentId")) is None]
    if parent is not None:
        return [c for c in categories if ids_equal(c.get("parentId"), parent)]
    return categories


@app.post("/categories")
async def create_category(body: CategoryCreateRequest, store: StoreDep):
    """カテゴリを追加する。"""
    created = store.create_record(
        "categories",
        {"name": body.name, "parentId": _parent_param(body.parentId)},
    )
    logger.info("Created category %s", created["id"])
    return created


@app.put("/categories")
async def update_category(body: CategoryUpdateRequest, store: StoreDep):
    """カテゴリの名前と親を更新する。"""
    if ids_equal(body.id, body.parentId):
        raise HTTPException(status_code=400, detail="A category cannot be its own parent")
    updated = store.update_record(
        "categories",
        body.id,
        {"name": body.name, "parentId": _parent_param(body.parentId)},
    )
    if updated is None:
        raise HTTPException(status_code=404, detail="Category not found")
    return updated


@app.delete("/categories")
async def delete_category(
    store: StoreDep,
    id: str | None = None,
    updateSubcategories: str | None = None,
    newParentId: str | None = None,
):
    """カテゴリを削除する。

    updateSubcategories=true なら直下の子を newParentId（省略時はルート）へ付け替え、
    それ以外は子孫ごと削除する。
    """
    if not id:
        raise HTTPException(status_code=400, detail="Category id is required")
    reparent = updateSubcategories == "true"
    new_parent = _parent_param(newParentId) if reparent else None
    if reparent and ids_equal(new_parent, id):
        raise HTTPException(
            status_code=400, detail="newParentId cannot be the deleted category"
        )
    removed = store.delete_category(id, reparent=reparent, new_parent_id=new_parent)
    if removed is None:
        raise HTTPException(status_code=404, detail="Category not found")
    logger.info("Deleted categories %s (reparent=%s)", removed, reparent)
    return {
        "success": True,
        "message": f"Deleted {len(removed)} category(ies)",
        "removed": removed,
    }


# ---------- 画像アップロード ----------


ALLOWED_IMAGE_TYPES = {"jpg", "jpeg", "png", "gif", "webp"}


@app.post("/upload")
async def upload_image(image: UploadFile, store: StoreDep):
    """商品画像を保存し、レコードに書き込む相対パスを返す。"""
    original_name = Path(image.filename or "").name
    extension = Path(original_name).suffix.lower().lstrip(".")
    if extension not in ALLOWED_IMAGE_TYPES:
        raise HTTPException(
            status_code=400,
            detail="Only JPG, JPEG, PNG, GIF and WEBP images are allowed",
        )
    content = await image.read()
    file_name = f"{int(time.time())}_{original_name}"
    image_path = store.save_image(file_name, content)
    logger.info("Saved image %s (%d bytes)", image_path, len(content))
    return {"success": True, "imagePath": image_path}


# ---------- その他のリソース ----------


@app.get("/{resource}")
async def list_resource(resource: str, store: StoreDep, id: str | None = None):
    """リソース一覧、または id 指定で1件。"""
    _ensure_resource(resource)
    if id is not None:
        record = store.get_record(resource, id)
        if record is None:
            raise HTTPException(status_code=404, detail="Record not found")
        return record
    return store.list_records(resource)


@app.post("/{resource}")
async def create_resource(
    resource: str,
    store: StoreDep,
    body: Annotated[dict[str, Any], Body()],
):
    """レコードを追加する。"""
    _ensure_resource(resource)
    return store.create_record(resource, body)


@app.put("/{resource}")
async def update_resource(
    resource: str,
    store: StoreDep,
    body: Annotated[dict[str, Any], Body()],
):
    """レコードを更新する。body に id が必須。"""
    _ensure_resource(resource)
    if body.get("id") in (None, ""):
        raise HTTPException(status_code=400, detail="id is required")
    updated = store.update_record(resource, body["id"], body)
    if updated is None:
        raise HTTPException(status_code=404, detail="Record not found")
    return updated


@app.delete("/{resource}")
async def delete_resource(resource: str, store: StoreDep, id: str | None = None):
    """レコードを削除する。"""
    _ensure_resource(resource)
    if not id:
        raise HTTPException(status_code=400, detail="id is required")
    if not store.delete_record(resource, id):
        raise HTTPException(status_code=404, detail="Record not found")
    return {"success": True, "message": f"Deleted {resource} {id}"}
