import json
from dataclasses import dataclass
from typing import List, Optional, Sequence

import requests

from geoattend.config.config_manager import config_manager
from geoattend.exceptions import SyncError
from geoattend.models import AttendanceLogRecord
from geoattend.schemas import sync_response_schema, validate_data
from geoattend.shared.logger import app_logger


@dataclass
class SyncVerdict:
    log_id: str
    synced: bool
    message: Optional[str] = None


class RemoteSyncClient:
    """HTTP client for the remote attendance endpoint.

    Sends the whole batch in one POST and returns the per-record verdicts.
    Any transport or contract failure is raised as SyncError.
    """

    def __init__(self, endpoint_url: str = None, api_key: str = None, timeout: float = None, session=None):
        self._endpoint_url = endpoint_url
        self._api_key = api_key
        self._timeout = timeout
        self.session = session or requests.Session()

    @property
    def endpoint_url(self) -> str:
        return self._endpoint_url or config_manager.get_sync_endpoint_url()

    @property
    def api_key(self) -> str:
        return self._api_key if self._api_key is not None else config_manager.get_sync_api_key()

    @property
    def timeout(self) -> float:
        return self._timeout or config_manager.get_sync_request_timeout()

    def send_batch(self, records: Sequence[AttendanceLogRecord]) -> List[SyncVerdict]:
        if not records:
            return []

        url = self.endpoint_url
        if not url:
            raise SyncError("SYNC_ENDPOINT_URL is not configured")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["x-api-key"] = self.api_key

        payload = [record.to_remote_dict() for record in records]

        app_logger.info(f"[SYNC] External API Request -> POST {url} ({len(payload)} record(s))")

        try:
            response = self.session.post(url, json=payload, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except requests.exceptions.RequestException as e:
            app_logger.error(f"[SYNC] HTTP error during sync call: {e}")
            raise SyncError(f"Sync request failed: {e}") from e
        except (json.JSONDecodeError, ValueError) as e:
            raise SyncError(f"Sync endpoint returned invalid JSON: {e}") from e

        valid, error = validate_data(data, sync_response_schema)
        if not valid:
            raise SyncError(f"Unexpected sync response: {error}")

        app_logger.debug(f"[SYNC] External API Response <- {response.status_code}: {data.get('message')}")

        return [
            SyncVerdict(
                log_id=item["logId"],
                synced=item["synced"],
                message=item.get("message"),
            )
            for item in data["results"]
        ]


remote_sync_client = RemoteSyncClient()
