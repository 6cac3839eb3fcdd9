import json
from dataclasses import dataclass

import requests


@dataclass
class XenditConfig:
    secret_key: str         # basic-auth username; password is empty
    api_base: str = "https://api.xendit.co"
    timeout: int = 25


class XenditError(RuntimeError):
    pass


class XenditClient:
    def __init__(self, cfg: XenditConfig):
        self.cfg = cfg

    def request(self, method: str, path: str, payload: dict | None = None) -> dict:
        body_bytes = json.dumps(payload or {}, separators=(",", ":")).encode("utf-8")
        url = f"{self.cfg.api_base.rstrip('/')}{path}"
        try:
            r = requests.request(
                method=method.upper(),
                url=url,
                data=body_bytes,
                headers={"Content-Type": "application/json", "Accept": "application/json"},
                auth=(self.cfg.secret_key, ""),
                timeout=self.cfg.timeout,
            )
        except requests.RequestException as e:
            raise XenditError(f"Xendit request failed: {e}") from e
        try:
            data = r.json() if r.text else {}
        except ValueError:
            data = {"raw": r.text}
        if r.status_code >= 400:
            raise XenditError(f"Xendit {r.status_code}: {data}")
        return data

    def create_invoice(self, payload: dict) -> dict:
        return self.request("POST", "/v2/invoices", payload)
