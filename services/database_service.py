from motor.motor_asyncio import AsyncIOMotorClient
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError
from bson import ObjectId
import certifi
from typing import Any, Dict, Iterable, List, Optional
import copy
import logging

from error_handler import Conflict, NotFound, StorageFailure
from utils.config import Config

logger = logging.getLogger(__name__)

USER_PUBLIC_FIELDS = {"username": 1, "name": 1}
PERSON_PUBLIC_FIELDS = {"name": 1, "number": 1}


class DatabaseService:
    """Persons and users in MongoDB.

    Until ``connect`` succeeds, or when the in-memory fallback is enabled and
    MongoDB cannot be reached, documents live in process memory instead.
    """

    def __init__(self, mongodb_url: str = None, db_name: str = None, in_memory_fallback: bool = None):
        self.mongodb_url = mongodb_url or Config.MONGODB_URL
        self.db_name = db_name or Config.MONGODB_DB_NAME
        self.ssl_allow_invalid = Config.MONGODB_SSL_ALLOW_INVALID_CERTIFICATES
        if in_memory_fallback is None:
            in_memory_fallback = Config.MONGODB_IN_MEMORY_FALLBACK
        self.in_memory_fallback = in_memory_fallback
        self.client = None
        self.db = None
        self.in_memory_store: Dict[str, Dict[ObjectId, Dict[str, Any]]] = {"persons": {}, "users": {}}

    async def connect(self) -> bool:
        """Connect to MongoDB; False means the in-memory store is in use.

        Raises StorageFailure when MongoDB is unreachable and the fallback is disabled.
        """
        try:
            logger.info(f"🔗 Connecting to MongoDB: {self.mongodb_url[:50]}...")
            motor_kwargs = {
                "serverSelectionTimeoutMS": 10000,
                "connectTimeoutMS": 10000,
                "socketTimeoutMS": 20000,
                "maxPoolSize": 10,
            }
            # Atlas clusters need TLS with a CA bundle
            if self.mongodb_url.startswith("mongodb+srv://") or "mongodb.net" in self.mongodb_url:
                motor_kwargs["tls"] = True
                motor_kwargs["tlsCAFile"] = certifi.where()
                motor_kwargs["serverSelectionTimeoutMS"] = 20000
            if self.ssl_allow_invalid:
                motor_kwargs["tlsAllowInvalidCertificates"] = True
                motor_kwargs["tlsAllowInvalidHostnames"] = True
            self.client = AsyncIOMotorClient(self.mongodb_url, **motor_kwargs)
            await self.client.admin.command('ping')
            logger.info("✅ MongoDB ping successful")
            await self.attach(self.client[self.db_name])
            logger.info(f"📊 Using database: {self.db_name}")
            return True
        except Exception as e:
            logger.error(f"❌ MongoDB connection failed: {e}")
            if self.client is not None:
                self.client.close()
            self.client = None
            self.db = None
            if not self.in_memory_fallback:
                raise StorageFailure(f"could not connect to MongoDB: {e}") from e
            logger.warning("💾 Using in-memory storage as fallback, data will not survive a restart")
            return False

    async def attach(self, db) -> None:
        """Use an already opened motor database and make sure its indexes exist"""
        self.db = db
        await self._initialize_collections()

    async def _initialize_collections(self):
        """Create the indexes the phonebook relies on"""
        await self.db.users.create_index("username", unique=True)
        await self.db.persons.create_index("user")
        collections = await self.db.list_collection_names()
        logger.info(f"📋 Collections: {collections}")

    # Persons

    async def _populate_users(self, persons: List[Dict]) -> List[Dict]:
        """Replace each person's user id with the owner's public fields."""
        user_ids = list({p["user"] for p in persons if isinstance(p.get("user"), ObjectId)})
        users = {u["_id"]: u for u in await self._find_users(user_ids, USER_PUBLIC_FIELDS)}
        for person in persons:
            owner = users.get(person.get("user"))
            if owner is not None:
                person["user"] = owner
        return persons

    async def _find_users(self, user_ids: Iterable[ObjectId], projection: Dict) -> List[Dict]:
        user_ids = list(user_ids)
        if not user_ids:
            return []
        if self.db is not None:
            cursor = self.db.users.find({"_id": {"$in": user_ids}}, projection)
            return await cursor.to_list(length=None)
        found = []
        for user_id in user_ids:
            user = self.in_memory_store["users"].get(user_id)
            if user is not None:
                found.append({key: copy.deepcopy(user[key]) for key in ("_id", *projection) if key in user})
        return found

    async def list_persons(self) -> List[Dict]:
        """Get every person with its owner populated"""
        if self.db is not None:
            persons = await self.db.persons.find({}).to_list(length=None)
        else:
            persons = [copy.deepcopy(p) for p in self.in_memory_store["persons"].values()]
        return await self._populate_users(persons)

    async def get_person(self, person_id: ObjectId) -> Dict:
        if self.db is not None:
            person = await self.db.persons.find_one({"_id": person_id})
        else:
            person = copy.deepcopy(self.in_memory_store["persons"].get(person_id))
        if person is None:
            raise NotFound()
        populated = await self._populate_users([person])
        return populated[0]

    async def count_persons(self) -> int:
        if self.db is not None:
            return await self.db.persons.count_documents({})
        return len(self.in_memory_store["persons"])

    async def create_person(self, fields: Dict, owner_id: ObjectId) -> Dict:
        """Insert a person owned by ``owner_id`` and link it to the owner"""
        person = {"_id": ObjectId(), "name": fields["name"], "number": fields["number"], "user": owner_id}
        if self.db is not None:
            await self.db.persons.insert_one(person)
            await self.db.users.update_one({"_id": owner_id}, {"$push": {"persons": person["_id"]}})
        else:
            self.in_memory_store["persons"][person["_id"]] = copy.deepcopy(person)
            owner = self.in_memory_store["users"].get(owner_id)
            if owner is not None:
                owner.setdefault("persons", []).append(person["_id"])
        logger.info(f"✅ Person created with ID: {person['_id']}")
        return person

    async def replace_person(self, person_id: ObjectId, fields: Dict) -> Dict:
        if self.db is not None:
            if fields:
                person = await self.db.persons.find_one_and_update(
                    {"_id": person_id},
                    {"$set": fields},
                    return_document=ReturnDocument.AFTER
                )
            else:
                person = await self.db.persons.find_one({"_id": person_id})
        else:
            stored = self.in_memory_store["persons"].get(person_id)
            if stored is not None:
                stored.update(copy.deepcopy(fields))
            person = copy.deepcopy(stored)
        if person is None:
            raise NotFound()
        logger.info(f"✅ Person {person_id} updated: {sorted(fields)}")
        return person

    async def delete_person(self, person_id: ObjectId) -> None:
        if self.db is not None:
            person = await self.db.persons.find_one_and_delete({"_id": person_id})
            if person is not None and person.get("user") is not None:
                await self.db.users.update_one({"_id": person["user"]}, {"$pull": {"persons": person_id}})
        else:
            person = self.in_memory_store["persons"].pop(person_id, None)
            if person is not None:
                owner = self.in_memory_store["users"].get(person.get("user"))
                if owner is not None and person_id in owner.get("persons", []):
                    owner["persons"].remove(person_id)
        if person is None:
            raise NotFound()
        logger.info(f"Deleted person {person_id}")

    # Users

    async def create_user(self, user_data: Dict) -> Dict:
        """Create a new user in the database"""
        user = {"_id": ObjectId(), "persons": [], **user_data}
        if self.db is not None:
            try:
                await self.db.users.insert_one(user)
            except DuplicateKeyError:
                raise Conflict("username must be unique")
        else:
            if any(u["username"] == user["username"] for u in self.in_memory_store["users"].values()):
                raise Conflict("username must be unique")
            self.in_memory_store["users"][user["_id"]] = copy.deepcopy(user)
        logger.info(f"✅ User created with ID: {user['_id']}")
        return user

    async def get_user_by_username(self, username: str) -> Optional[Dict]:
        if self.db is not None:
            return await self.db.users.find_one({"username": username})
        for user in self.in_memory_store["users"].values():
            if user["username"] == username:
                return copy.deepcopy(user)
        return None

    async def get_user_by_id(self, user_id: ObjectId) -> Optional[Dict]:
        if self.db is not None:
            return await self.db.users.find_one({"_id": user_id})
        return copy.deepcopy(self.in_memory_store["users"].get(user_id))

    async def list_users(self) -> List[Dict]:
        """Get every user with the persons they created"""
        if self.db is not None:
            users = await self.db.users.find({}, {"password_hash": 0}).to_list(length=None)
            persons = await self.db.persons.find({}, PERSON_PUBLIC_FIELDS).to_list(length=None)
        else:
            users = [copy.deepcopy(u) for u in self.in_memory_store["users"].values()]
            persons = [
                {"_id": p["_id"], "name": p["name"], "number": p["number"]}
                for p in self.in_memory_store["persons"].values()
            ]
        by_id = {p["_id"]: p for p in persons}
        for user in users:
            user.pop("password_hash", None)
            user["persons"] = [by_id[pid] for pid in user.get("persons", []) if pid in by_id]
        return users

    async def clear(self) -> None:
        """Remove every person and user"""
        if self.db is not None:
            await self.db.persons.delete_many({})
            await self.db.users.delete_many({})
        else:
            self.in_memory_store["persons"].clear()
            self.in_memory_store["users"].clear()
        logger.info("🧹 Phonebook collections cleared")

    async def close(self):
        if self.client:
            self.client.close()
            logger.info("Database connection closed")


# global instance; connected in the app lifespan
database_service = DatabaseService()


def get_database_service() -> DatabaseService:
    """FastAPI dependency returning the process-wide database service."""
    return database_service
