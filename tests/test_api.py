"""HTTP-level tests for the FastAPI app.

Run with:  python -m pytest tests/
"""

import json
import tempfile
import unittest
from pathlib import Path

from fastapi.testclient import TestClient

from report_server.config import ServerConfig
from report_server.main import create_app

from _fixtures import FailingInsertStore

MB = 1024 * 1024


def _payload(host_ip="10.0.0.5", size_bytes=MB, **extra) -> dict:
    body = {
        "host_name": "FILESRV01",
        "host_ip": host_ip,
        "timestamp": "2026-10-18 09:00:00",
        "base_path": "D:\\Shares",
        "directories": [
            {"path": "D:\\Shares\\Finance", "file_count": 10, "size_bytes": size_bytes, "size_mb": size_bytes // MB},
        ],
        "totals": {"total_directories": 1, "total_files": 10, "total_size_bytes": size_bytes},
    }
    body.update(extra)
    return body


class ApiTestCase(unittest.TestCase):
    def setUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        tmp = Path(self._tmp.name)
        self.config = ServerConfig(
            db_path=str(tmp / "reports.db"),
            audit_log_path=str(tmp / "audit.log"),
        )
        self.client = TestClient(create_app(self.config))
        self.client.__enter__()

    def tearDown(self):
        self.client.__exit__(None, None, None)
        self._tmp.cleanup()


class TestIngestEndpoint(ApiTestCase):
    def test_new_host_created(self):
        r = self.client.post("/command", json=_payload())
        self.assertEqual(r.status_code, 201)
        body = r.json()
        self.assertEqual(body["status"], "success")
        self.assertEqual(body["outcome"], "new_host")
        self.assertIsInstance(body["report_id"], int)

    def test_duplicate_is_skipped_with_same_id(self):
        first = self.client.post("/command", json=_payload()).json()
        r = self.client.post("/command", json=_payload())
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.json()["status"], "skipped")
        self.assertEqual(r.json()["report_id"], first["report_id"])

    def test_changed_report_is_updated(self):
        first = self.client.post("/command", json=_payload()).json()
        r = self.client.post("/command", json=_payload(size_bytes=2 * MB))
        self.assertEqual(r.status_code, 201)
        self.assertEqual(r.json()["outcome"], "updated")
        self.assertNotEqual(r.json()["report_id"], first["report_id"])

    def test_ingest_alias(self):
        r = self.client.post("/ingest", json=_payload())
        self.assertEqual(r.status_code, 201)

    def test_invalid_json_is_400_and_audited(self):
        r = self.client.post(
            "/command", content=b"{oops", headers={"Content-Type": "application/json"}
        )
        self.assertEqual(r.status_code, 400)
        events = self.client.get("/api/audit", params={"action": "VALIDATE"}).json()
        self.assertEqual(len(events), 1)
        self.assertEqual(events[0]["status"], "ERROR")

    def test_missing_host_ip_is_400(self):
        body = _payload()
        del body["host_ip"]
        r = self.client.post("/command", json=body)
        self.assertEqual(r.status_code, 400)
        self.assertEqual(self.client.get("/api/hosts").json(), [])

    def test_oversized_total_directories_is_400_and_audited_once(self):
        r = self.client.post("/command", json=_payload(total_directories=2 ** 63))
        self.assertEqual(r.status_code, 400)
        events = self.client.get("/api/audit").json()
        self.assertEqual([(e["action"], e["status"]) for e in events], [("VALIDATE", "ERROR")])
        self.assertEqual(self.client.get("/api/hosts").json(), [])

    def test_lone_surrogate_host_ip_is_400_and_audited_once(self):
        body = b'{"host_ip": "\\ud800", "directories": []}'
        r = self.client.post("/command", content=body, headers={"Content-Type": "application/json"})
        self.assertEqual(r.status_code, 400)
        events = self.client.get("/api/audit").json()
        self.assertEqual([(e["action"], e["status"]) for e in events], [("VALIDATE", "ERROR")])
        self.assertEqual(events[0]["host_ip"], "\\ud800")


class TestQueryEndpoints(ApiTestCase):
    def test_hosts_summary(self):
        self.client.post("/command", json=_payload())
        self.client.post("/command", json=_payload(size_bytes=3 * MB))
        self.client.post("/command", json=_payload(host_ip="10.0.0.6", size_bytes=5 * MB))

        hosts = {h["host_ip"]: h for h in self.client.get("/api/hosts").json()}
        self.assertEqual(set(hosts), {"10.0.0.5", "10.0.0.6"})
        self.assertEqual(hosts["10.0.0.5"]["total_size_mb"], 3)
        self.assertEqual(hosts["10.0.0.5"]["report_count"], 2)
        self.assertEqual(hosts["10.0.0.5"]["host_name"], "FILESRV01")
        self.assertEqual(hosts["10.0.0.6"]["total_size_gb"], 0)
        self.assertIn("last_report", hosts["10.0.0.6"])

    def test_host_reports_history(self):
        a = self.client.post("/command", json=_payload()).json()
        b = self.client.post("/command", json=_payload(size_bytes=2 * MB)).json()
        r = self.client.get("/api/host/reports", params={"ip": "10.0.0.5"})
        self.assertEqual(r.status_code, 200)
        history = r.json()
        self.assertEqual([h["id"] for h in history], [b["report_id"], a["report_id"]])
        self.assertEqual(history[0]["total_size_mb"], 2)
        self.assertEqual(history[0]["total_directories"], 1)
        self.assertEqual(history[0]["directories"][0]["path"], "D:\\Shares\\Finance")

    def test_host_reports_limit(self):
        for i in range(1, 4):
            self.client.post("/command", json=_payload(size_bytes=i * MB))
        r = self.client.get("/api/host/reports", params={"ip": "10.0.0.5", "limit": 2})
        self.assertEqual(len(r.json()), 2)

    def test_host_reports_unknown_host(self):
        r = self.client.get("/api/host/reports", params={"ip": "192.168.1.1"})
        self.assertEqual(r.status_code, 404)

    def test_host_reports_requires_ip(self):
        self.assertEqual(self.client.get("/api/host/reports").status_code, 422)

    def test_report_details_verbatim(self):
        sent = _payload(agent_version="dirscan 1.2")
        report_id = self.client.post("/command", json=sent).json()["report_id"]
        r = self.client.get("/api/report/details", params={"id": report_id})
        self.assertEqual(r.status_code, 200)
        self.assertEqual(r.headers["content-type"], "application/json")
        self.assertEqual(json.loads(r.content), sent)

    def test_report_details_unknown(self):
        r = self.client.get("/api/report/details", params={"id": 999})
        self.assertEqual(r.status_code, 404)

    def test_audit_filters(self):
        self.client.post("/command", json=_payload())
        self.client.post("/command", json=_payload())
        self.client.post("/command", json=_payload(host_ip="10.0.0.6"))

        all_events = self.client.get("/api/audit").json()
        self.assertEqual(len(all_events), 3)
        skipped = self.client.get("/api/audit", params={"action": "RECEIVE"}).json()
        self.assertEqual([e["status"] for e in skipped], ["SKIPPED"])
        other = self.client.get("/api/audit", params={"host_ip": "10.0.0.6"}).json()
        self.assertEqual([e["status"] for e in other], ["NEW_HOST"])
        limited = self.client.get("/api/audit", params={"limit": 1}).json()
        self.assertEqual(len(limited), 1)

    def test_health(self):
        body = self.client.get("/health").json()
        self.assertEqual(body["status"], "healthy")
        self.assertEqual(body["database"], "healthy")


class TestStorageFailureEndpoint(unittest.TestCase):
    def test_failed_save_is_500_and_audited(self):
        with tempfile.TemporaryDirectory() as tmp:
            db_path = str(Path(tmp) / "reports.db")
            config = ServerConfig(db_path=db_path, audit_log_path=None)
            app = create_app(config, store=FailingInsertStore(db_path))
            with TestClient(app) as client:
                r = client.post("/command", json=_payload())
                self.assertEqual(r.status_code, 500)
                events = client.get("/api/audit").json()
                self.assertEqual([(e["action"], e["status"]) for e in events], [("SAVE", "ERROR")])


if __name__ == "__main__":
    unittest.main()
