from pydantic import BaseModel, ConfigDict


class AuthenticatedAccount(BaseModel):
    """Account context passed through authentication dependencies"""

    model_config = ConfigDict(from_attributes=True)

    account_id: str
    is_admin: bool = False
