"""Client service - Business logic for client records"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ...database import transaction
from ...errors import ConflictError, NotFoundError
from ...models import Client, User
from ...shared.enums import UserRole
from .repository import ClientRepository
from .schemas import ClientCreate, ClientUpdate

logger = logging.getLogger(__name__)


class ClientService:
    """Service layer for client business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ClientRepository()

    def get_clients(self, search: Optional[str] = None, limit: int = 100, offset: int = 0) -> list[Client]:
        return self.repo.get_clients(self.db, search=search, limit=limit, offset=offset)

    def get_client(self, client_id: int) -> Client:
        client = self.repo.get_client_by_id(self.db, client_id)
        if not client:
            raise NotFoundError("Client not found")
        return client

    def create_client(self, data: ClientCreate) -> Client:
        with transaction(self.db, "client creation"):
            client = self.repo.create_client(
                self.db,
                name=data.name,
                business_name=data.businessName,
                email=data.email,
            )
        logger.info(f"✅ Client created: {client.id} ({client.name})")
        return client

    def update_client(self, client_id: int, data: ClientUpdate) -> Client:
        client = self.get_client(client_id)
        # Purchase aggregates are owned by the order lifecycle and are not editable here
        with transaction(self.db, f"client update {client_id}"):
            self.repo.update_client(
                self.db,
                client,
                name=data.name,
                business_name=data.businessName,
                email=data.email,
            )
        return client

    def link_user(self, client_id: int, email: str) -> User:
        """Attach a user account to a client so it can shop on the client's behalf"""
        client = self.get_client(client_id)
        user = self.repo.get_user_by_email(self.db, email)
        if not user:
            raise NotFoundError("No user registered with this email")
        if user.role != UserRole.CLIENT:
            raise ConflictError("Only client accounts can be linked to a client")
        if user.client_id and user.client_id != client.id:
            raise ConflictError("User is already linked to another client")

        with transaction(self.db, f"user link to client {client_id}"):
            user.client_id = client.id
        logger.info(f"🔗 User {user.id} linked to client {client.id}")
        return user
