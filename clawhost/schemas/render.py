"""Pydantic schemas for Render API responses.

API Documentation: https://api-docs.render.com
"""

from pydantic import BaseModel, ConfigDict, Field


class RenderServiceDetails(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    url: str | None = Field(None, description="Public onrender.com URL once assigned")
    env: str | None = Field(None, description="Runtime (docker, image, node...)")
    region: str | None = None
    plan: str | None = None


class RenderService(BaseModel):
    """Service from GET /services/{service_id}."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str = Field(..., description="Service id (srv-...)")
    name: str = Field(..., description="Service name")
    type: str | None = Field(None, description="web_service, background_worker, ...")
    owner_id: str | None = Field(None, alias="ownerId")
    suspended: str | None = Field(None, description="suspended or not_suspended")
    suspenders: list[str] = Field(default_factory=list)
    service_details: RenderServiceDetails = Field(
        default_factory=RenderServiceDetails, alias="serviceDetails"
    )
    created_at: str | None = Field(None, alias="createdAt")
    updated_at: str | None = Field(None, alias="updatedAt")

    @property
    def is_running(self) -> bool:
        """A service counts as running when it is not suspended and has a public URL."""
        return self.suspended == "not_suspended" and self.service_details.url is not None


class RenderDeploy(BaseModel):
    """Deploy from GET /services/{service_id}/deploys/{deploy_id}."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    id: str
    status: str = Field(..., description="created, build_in_progress, live, build_failed, ...")
    created_at: str | None = Field(None, alias="createdAt")
    finished_at: str | None = Field(None, alias="finishedAt")
