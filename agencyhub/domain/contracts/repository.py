"""Contract repository - Database operations for service contracts"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import ServiceContract


class ContractRepository:
    """Repository for service contract database operations"""

    @staticmethod
    def get_by_order_id(db: Session, order_id: int) -> Optional[ServiceContract]:
        return db.query(ServiceContract).filter(ServiceContract.order_id == order_id).first()

    @staticmethod
    def record_signature(
        db: Session,
        contract: ServiceContract,
        *,
        signed_at,
        signature_data: str,
        signed_by_name: str,
        signed_by_email: str,
        ip_address,
        user_agent,
    ) -> ServiceContract:
        contract.signed_at = signed_at
        contract.signature_data = signature_data
        contract.signed_by_name = signed_by_name
        contract.signed_by_email = signed_by_email
        contract.ip_address = ip_address
        contract.user_agent = user_agent
        db.flush()
        return contract
