"""リソース単位の API（categories / products / cart / carousel）."""

from typing import Any

from storefront.client.errors import ValidationError
from storefront.client.resilient import ResilientClient, Validator


def require_id(data: Any) -> None:
    """id を必須とする検証."""
    if not isinstance(data, dict) or data.get("id") in (None, ""):
        raise ValidationError("id is required")


def validate_category(data: Any) -> None:
    """カテゴリ作成時の検証. name は空白以外を含む文字列."""
    if not isinstance(data, dict):
        raise ValidationError("category payload must be an object")
    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("category name must not be empty")


def validate_category_update(data: Any) -> None:
    require_id(data)
    validate_category(data)


class ResourceApi:
    """1リソース分の list / get / create / update / delete."""

    def __init__(
        self,
        client: ResilientClient,
        resource: str,
        create_validator: Validator | None = None,
        update_validator: Validator | None = require_id,
    ) -> None:
        self._client = client
        self.resource = resource
        self._create_validator = create_validator
        self._update_validator = update_validator

    async def list(self, bypass_cache: bool = False) -> list[Any]:
        """一覧. 失敗してもフォールバックデータを返す."""
        return await self._client.read_list(self.resource, bypass_cache=bypass_cache)

    async def get(self, record_id: Any) -> Any:
        """1件取得. 存在しなければ HttpError(404)."""
        if record_id in (None, ""):
            raise ValidationError("id is required")
        return await self._client.read(self.resource, {"id": record_id})

    async def create(self, data: dict[str, Any]) -> Any:
        return await self._client.mutate(
            "POST", self.resource, body=data, validate=self._create_validator
        )

    async def update(self, data: dict[str, Any]) -> Any:
        return await self._client.mutate(
            "PUT", self.resource, body=data, validate=self._update_validator
        )

    async def delete(self, record_id: Any, **extra: Any) -> Any:
        params = {"id": record_id, **extra}
        return await self._client.mutate(
            "DELETE", self.resource, params=params, validate=require_id
        )

    def invalidate(self) -> None:
        self._client.invalidate(self.resource)


class CategoryApi(ResourceApi):
    """カテゴリ API. 名前の検証と、サブカテゴリ付け替え付きの削除を持つ."""

    def __init__(self, client: ResilientClient) -> None:
        super().__init__(
            client,
            "categories",
            create_validator=validate_category,
            update_validator=validate_category_update,
        )

    async def create(self, data: dict[str, Any]) -> Any:
        validate_category(data)
        payload = {**data, "name": data["name"].strip()}
        return await super().create(payload)

    async def update(self, data: dict[str, Any]) -> Any:
        validate_category_update(data)
        payload = {**data, "name": data["name"].strip()}
        return await super().update(payload)

    async def delete(
        self,
        record_id: Any,
        update_subcategories: bool = False,
        new_parent_id: Any = None,
    ) -> Any:
        """カテゴリを削除する.

        update_subcategories=True なら直下の子を new_parent_id（None ならルート）に
        付け替える。False ならバックエンドが子孫ごと削除する。
        """
        extra: dict[str, Any] = {}
        if update_subcategories:
            extra["updateSubcategories"] = "true"
            if new_parent_id is not None:
                extra["newParentId"] = new_parent_id
        return await super().delete(record_id, **extra)

    async def main_categories(self) -> list[Any]:
        """ルートカテゴリのみ（バックエンド側で絞り込み）."""
        return await self._client.read_list(
            self.resource, {"mainCategories": "true"}
        )

    async def subcategories(self, parent_id: Any) -> list[Any]:
        """直下の子カテゴリ（バックエンド側で絞り込み）."""
        if parent_id in (None, ""):
            return []
        return await self._client.read_list(self.resource, {"parent": parent_id})
