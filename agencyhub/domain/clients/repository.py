"""Client repository - Database operations for clients"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Client, User


class ClientRepository:
    """Repository for client database operations"""

    @staticmethod
    def get_clients(db: Session, search: Optional[str] = None, limit: int = 100, offset: int = 0) -> list[Client]:
        """Get clients, newest first"""
        query = db.query(Client)
        if search:
            pattern = f"%{search}%"
            query = query.filter(
                Client.name.ilike(pattern) | Client.business_name.ilike(pattern) | Client.email.ilike(pattern)
            )
        return query.order_by(Client.created_at.desc(), Client.id.desc()).offset(offset).limit(limit).all()

    @staticmethod
    def get_client_by_id(db: Session, client_id: int) -> Optional[Client]:
        return db.query(Client).filter(Client.id == client_id).first()

    @staticmethod
    def create_client(db: Session, **client_data) -> Client:
        client = Client(**client_data)
        db.add(client)
        db.flush()
        return client

    @staticmethod
    def update_client(db: Session, client: Client, **updates) -> Client:
        """Update a client with provided fields"""
        for key, value in updates.items():
            if value is not None and hasattr(client, key):
                setattr(client, key, value)
        db.flush()
        return client

    @staticmethod
    def get_user_by_email(db: Session, email: str) -> Optional[User]:
        return db.query(User).filter(User.email == email).first()
