"""Фейковый Attio поверх httpx.MockTransport и сборка payload Tally."""

import json
from typing import Any

import httpx


def _unwrap(value: Any, key: str) -> Any:
    """Значение атрибута в любой кодировке (structured или plain)."""
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, dict):
        return value.get(key)
    return value


class FakeAttio:
    """Минимальная in-memory модель workspace Attio."""

    def __init__(self):
        self.companies: dict[str, str] = {}
        self.people: dict[str, str] = {}
        # domain / email -> последнее записанное имя
        self.company_names: dict[str, str] = {}
        self.person_names: dict[str, str] = {}
        self.deals: list[dict[str, Any]] = []
        self.requests: list[tuple[str, dict[str, Any]]] = []

        # operation -> список статусов, которые вернуть перед нормальной обработкой
        self.failures: dict[str, list[int]] = {}
        # operation -> кодировка, которую Attio отклоняет с 400
        self.rejected_encodings: dict[str, str] = {}

    def fail(self, operation: str, *statuses: int) -> None:
        self.failures.setdefault(operation, []).extend(statuses)

    def reject(self, operation: str, encoding: str) -> None:
        self.rejected_encodings[operation] = encoding

    def calls(self, operation: str) -> list[dict[str, Any]]:
        return [body for name, body in self.requests if name == operation]

    @property
    def operations(self) -> list[str]:
        return [name for name, _ in self.requests]

    @staticmethod
    def _record(prefix: str, index: int) -> dict[str, Any]:
        return {
            "data": {
                "id": {
                    "workspace_id": "ws_1",
                    "object_id": prefix,
                    "record_id": f"{prefix}_{index}"
                },
                "values": {}
            }
        }

    @staticmethod
    def _operation(request: httpx.Request) -> str:
        path = request.url.path
        if request.method == "PUT" and path.endswith("/objects/companies/records"):
            return "upsert_company"
        if request.method == "PUT" and path.endswith("/objects/people/records"):
            return "upsert_person"
        if request.method == "POST" and path.endswith("/objects/companies/records/query"):
            return "query_companies"
        if request.method == "POST" and path.endswith("/objects/people/records/query"):
            return "query_people"
        if request.method == "POST" and path.endswith("/objects/deals/records/query"):
            return "query_deals"
        if request.method == "POST" and path.endswith("/objects/deals/records"):
            return "create_deal"
        return "unknown"

    @staticmethod
    def _encoding(operation: str, values: dict[str, Any]) -> str:
        key = {
            "upsert_company": "domains",
            "upsert_person": "email_addresses",
            "create_deal": "stage"
        }.get(operation)
        value = values.get(key)
        if isinstance(value, list) and value and isinstance(value[0], dict):
            return "structured"
        return "plain"

    def handler(self, request: httpx.Request) -> httpx.Response:
        operation = self._operation(request)
        body = json.loads(request.content) if request.content else {}
        self.requests.append((operation, body))

        pending = self.failures.get(operation)
        if pending:
            status = pending.pop(0)
            return httpx.Response(status, json={
                "status_code": status,
                "type": "invalid_request_error" if status in (400, 422) else "api_error",
                "message": "Simulated failure"
            })

        values = body.get("data", {}).get("values", {})
        rejected = self.rejected_encodings.get(operation)
        if rejected and self._encoding(operation, values) == rejected:
            return httpx.Response(400, json={
                "status_code": 400,
                "type": "invalid_request_error",
                "code": "validation_type",
                "message": f"Invalid value shape ({rejected})"
            })

        if operation == "upsert_company":
            domain = _unwrap(values["domains"], "domain")
            if domain not in self.companies:
                self.companies[domain] = f"company_{len(self.companies) + 1}"
            if "name" in values:
                self.company_names[domain] = _unwrap(values["name"], "value")
            record = self._record("company", len(self.companies))
            record["data"]["id"]["record_id"] = self.companies[domain]
            return httpx.Response(200, json=record)

        if operation == "upsert_person":
            email = _unwrap(values["email_addresses"], "email_address")
            if email not in self.people:
                self.people[email] = f"person_{len(self.people) + 1}"
            if "name" in values:
                self.person_names[email] = _unwrap(values["name"], "full_name")
            record = self._record("person", len(self.people))
            record["data"]["id"]["record_id"] = self.people[email]
            return httpx.Response(200, json=record)

        if operation in ("query_companies", "query_people"):
            ((attribute, wanted),) = body["filter"].items()
            index = self.companies if operation == "query_companies" else self.people
            matches = [{"id": {"record_id": index[wanted]}}] if wanted in index else []
            return httpx.Response(200, json={"data": matches})

        if operation == "query_deals":
            ((attribute, wanted),) = body["filter"].items()
            matches = [
                {"id": {"record_id": deal["id"]}}
                for deal in self.deals
                if _unwrap(deal["values"].get(attribute), "value") == wanted
            ]
            return httpx.Response(200, json={"data": matches[:body.get("limit", 50)]})

        if operation == "create_deal":
            deal_id = f"deal_{len(self.deals) + 1}"
            self.deals.append({"id": deal_id, "values": values})
            return httpx.Response(200, json={
                "data": {"id": {"record_id": deal_id}, "values": {}}
            })

        return httpx.Response(404, json={"status_code": 404, "message": "Not found"})


def make_payload(
    fields: list[dict[str, Any]],
    response_id: str | None = "resp_1",
    submission_id: str | None = None
) -> dict[str, Any]:
    """Payload вебхука Tally FORM_RESPONSE."""

    data: dict[str, Any] = {
        "formId": "form_1",
        "formName": "Contact sales",
        "fields": fields
    }
    if response_id:
        data["responseId"] = response_id
    if submission_id:
        data["submissionId"] = submission_id

    return {
        "eventId": "evt_1",
        "eventType": "FORM_RESPONSE",
        "createdAt": "2026-10-18T10:00:00.000Z",
        "data": data
    }


def field(label: str, value: Any, **extra: Any) -> dict[str, Any]:
    return {"label": label, "value": value, **extra}
