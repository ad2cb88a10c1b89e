import re
from typing import Any

from bson import ObjectId
from bson.errors import InvalidId
from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorCollection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from shared.clients.meta.MetaClientInterface import MetaClientInterface
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig
from shared.models.document import Attachment, Document, TextSegment, utc_now
from shared.models.errors import NotFoundError


class MetaClientMongo(MetaClientInterface):
    """MongoDB metadata store. One record per document, attachments embedded in order.

    Appends use $push and removals use $pull, both single-document atomic, so
    concurrent batches on the same document are linearized by the server.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)
        self._uri = self.get_config_val("URI", default=None, val_type="string")
        self._database_name = self.get_config_val("DATABASE", default="documents", val_type="string")
        self._collection_name = self.get_config_val("COLLECTION", default="documents", val_type="string")
        self._mongo: AsyncIOMotorClient | None = None
        self._collection: AsyncIOMotorCollection | None = None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_engine_name(self) -> str:
        return "Mongo"

    ################ CONFIG ##################
    def _get_required_config(self) -> list[EnvConfig]:
        return [
            EnvConfig(env_key="URI", val_type="string", default=None),
            EnvConfig(env_key="DATABASE", val_type="string", default="documents"),
            EnvConfig(env_key="COLLECTION", val_type="string", default="documents"),
        ]

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self) -> None:
        timeout_ms = int(self.timeout * 1000)
        self._mongo = AsyncIOMotorClient(
            self._uri,
            serverSelectionTimeoutMS=timeout_ms,
            socketTimeoutMS=timeout_ms,
            tz_aware=True,
        )
        self._collection = self._mongo[self._database_name][self._collection_name]
        await self._ensure_indexes()
        self.logging.info("Mongo metadata client ready for '%s.%s'.", self._database_name, self._collection_name)

    async def close(self) -> None:
        if self._mongo is not None:
            self._mongo.close()
            self._mongo = None
            self._collection = None

    async def _ensure_indexes(self) -> None:
        collection = self._require_collection()
        # backs the global blob key uniqueness invariant
        await collection.create_index(
            [("attachments.blob_key", ASCENDING)],
            name="attachments_blob_key_unique",
            unique=True,
            partialFilterExpression={"attachments.blob_key": {"$exists": True}},
        )
        await collection.create_index([("created_at", DESCENDING)], name="created_at_desc")

    def _require_collection(self) -> AsyncIOMotorCollection:
        if self._collection is None:
            raise Exception("Mongo client not initialised. Call boot() before making requests.")
        return self._collection

    async def do_healthcheck(self) -> bool:
        if self._mongo is None:
            return False
        try:
            await self._mongo.admin.command("ping")
        except PyMongoError as exc:
            self.logging.warning("Mongo healthcheck failed: %s", exc)
            return False
        return True

    ##########################################
    ############## CONVERSION ################
    ##########################################

    @staticmethod
    def _to_object_id(document_id: str) -> ObjectId:
        try:
            return ObjectId(document_id)
        except (InvalidId, TypeError):
            raise NotFoundError("Document not found", resource_type="document", resource_id=document_id)

    @staticmethod
    def _to_document(raw: dict[str, Any]) -> Document:
        return Document(
            id=str(raw["_id"]),
            title=raw.get("title", ""),
            attachments=[Attachment(**att) for att in raw.get("attachments", [])],
            full_text=raw.get("full_text", ""),
            text_segments=[TextSegment(**seg) for seg in raw.get("text_segments", [])],
            created_at=raw.get("created_at") or utc_now(),
            updated_at=raw.get("updated_at") or utc_now(),
            revision=raw.get("revision", 0),
        )

    ##########################################
    ############ ENGINE PRIMITIVES ###########
    ##########################################

    async def _create_document(self, title: str) -> Document:
        now = utc_now()
        record = {
            "title": title,
            "attachments": [],
            "full_text": "",
            "text_segments": [],
            "created_at": now,
            "updated_at": now,
            "revision": 0,
        }
        result = await self._require_collection().insert_one(record)
        record["_id"] = result.inserted_id
        return self._to_document(record)

    async def _fetch_document(self, document_id: str) -> Document:
        raw = await self._require_collection().find_one({"_id": self._to_object_id(document_id)})
        if raw is None:
            raise NotFoundError("Document not found", resource_type="document", resource_id=document_id)
        return self._to_document(raw)

    async def _list_documents(self, limit: int) -> list[Document]:
        cursor = self._require_collection().find({}).sort("created_at", DESCENDING).limit(limit)
        return [self._to_document(raw) async for raw in cursor]

    async def _append_attachments(self, document_id: str, attachments: list[Attachment]) -> Document:
        raw = await self._require_collection().find_one_and_update(
            {"_id": self._to_object_id(document_id)},
            {
                "$push": {"attachments": {"$each": [att.model_dump() for att in attachments]}},
                "$set": {"updated_at": utc_now()},
                "$inc": {"revision": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            raise NotFoundError("Document not found", resource_type="document", resource_id=document_id)
        return self._to_document(raw)

    async def _remove_attachment(self, document_id: str, attachment_id: str) -> Document:
        raw = await self._require_collection().find_one_and_update(
            {"_id": self._to_object_id(document_id)},
            {
                "$pull": {"attachments": {"id": attachment_id}},
                "$set": {"updated_at": utc_now()},
                "$inc": {"revision": 1},
            },
            return_document=ReturnDocument.AFTER,
        )
        if raw is None:
            raise NotFoundError("Document not found", resource_type="document", resource_id=document_id)
        return self._to_document(raw)

    async def _compare_and_set_full_text(
        self,
        document_id: str,
        full_text: str,
        expected_revision: int,
        text_segments: list[TextSegment] | None,
    ) -> bool:
        fields: dict[str, Any] = {"full_text": full_text, "updated_at": utc_now()}
        if text_segments is not None:
            fields["text_segments"] = [seg.model_dump() for seg in text_segments]
        result = await self._require_collection().update_one(
            {"_id": self._to_object_id(document_id), "revision": expected_revision},
            {"$set": fields, "$inc": {"revision": 1}},
        )
        return result.modified_count == 1

    async def _search_candidates(self, terms: list[str], limit: int) -> list[Document]:
        if not terms:
            return []
        patterns = [{"$regex": re.escape(term), "$options": "i"} for term in terms]
        title_clauses = [{"title": pattern} for pattern in patterns]
        text_clauses = [{"full_text": pattern} for pattern in patterns]
        collection = self._require_collection()

        # title matches are not capped
        title_cursor = collection.find({"$or": title_clauses})
        documents = [self._to_document(raw) async for raw in title_cursor]

        text_cursor = (
            collection.find({"$or": text_clauses, "$nor": title_clauses})
            .sort("created_at", DESCENDING)
            .limit(limit)
        )
        documents.extend([self._to_document(raw) async for raw in text_cursor])
        return documents
