"""Role-aware dashboard read model."""
from pydantic import BaseModel, Field

from gigpay.models.profile import ProfileRole
from gigpay.schemas.gig import GigRead
from gigpay.schemas.profile import ProfileRead


class Dashboard(BaseModel):
    profile: ProfileRead
    role: ProfileRole
    my_gigs: list[GigRead] = Field(default_factory=list)
    open_gigs: list[GigRead] = Field(default_factory=list)
