import httpx
from pydantic import BaseModel, ValidationError

from reportgen.features.reports.errors import SourceDataError

DEFAULT_BASE_URL = "https://botw-compendium.herokuapp.com/api/v3/compendium"


class Monster(BaseModel):
    name: str
    id: int
    category: str = ""
    description: str = ""
    image: str = ""
    common_locations: list[str] | None = None
    drops: list[str] | None = None
    dlc: bool = False


class MonstersResponse(BaseModel):
    data: list[Monster] | None = None


class SourceDataClient:
    """Reads the monster compendium used as the report dataset."""

    def __init__(self, http_client: httpx.AsyncClient, base_url: str = DEFAULT_BASE_URL, game: str = "totk"):
        self._http = http_client
        self._base_url = base_url.rstrip("/")
        self._game = game

    async def fetch_records(self) -> list[Monster]:
        url = f"{self._base_url}/category/monsters"
        try:
            response = await self._http.get(url, params={"game": self._game})
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise SourceDataError(f"failed to get monsters from source: {exc}") from exc
        try:
            payload = MonstersResponse.model_validate_json(response.content)
        except ValidationError as exc:
            raise SourceDataError(f"failed to decode source response: {exc}") from exc
        return payload.data or []
