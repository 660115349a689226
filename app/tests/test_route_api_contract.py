import io
import os
import sys
import unittest

# Ensure imports work when tests run from repository root.
APP_DIR = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if APP_DIR not in sys.path:
    sys.path.insert(0, APP_DIR)

from main import app


def make_route(**extra):
    route = {
        "id": "climb",
        "filename": "hill-repeat.gpx",
        "points": [
            {"lat": 37.000, "lon": -122.000, "elevation": 0},
            {"lat": 37.001, "lon": -122.001, "elevation": 50},
            {"lat": 37.002, "lon": -122.000, "elevation": 20},
            {"lat": 37.003, "lon": -121.999, "elevation": 80},
        ],
    }
    route.update(extra)
    return route


SAMPLE_GPX = b"""<?xml version="1.0" encoding="UTF-8"?>
<gpx version="1.1" creator="test" xmlns="http://www.topografix.com/GPX/1/1">
  <trk><name>Upload</name><trkseg>
    <trkpt lat="46.0" lon="8.0"><ele>400</ele></trkpt>
    <trkpt lat="46.01" lon="8.01"><ele>650</ele></trkpt>
  </trkseg></trk>
</gpx>
"""


class RouteApiContractTests(unittest.TestCase):
    def setUp(self):
        app.config["TESTING"] = True
        self.client = app.test_client()

    def test_health(self):
        response = self.client.get("/api/health")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.get_json()["status"], "healthy")

    def test_presets(self):
        payload = self.client.get("/api/presets").get_json()
        self.assertEqual(payload["defaults"]["targetHeight"], 20)
        self.assertIn("climbingCoin", payload["presets"])
        self.assertEqual(payload["presets"]["dramatic"]["options"]["targetHeight"], 40)

    def test_preview_returns_mesh_and_validation(self):
        response = self.client.post("/api/preview", json={"route": make_route(), "options": {}})
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertTrue(payload["success"])

        mesh = payload["mesh"]
        self.assertEqual(len(mesh["vertices"]), len(mesh["normals"]))
        self.assertEqual(len(mesh["vertices"]) % 3, 0)
        self.assertEqual(len(mesh["faces"]), (8 * 3 + 4) + 128)
        self.assertTrue(payload["validation"]["is_printable"])
        self.assertEqual(payload["validation"]["open_edges"], 0)
        self.assertEqual(payload["filename"], "hill-repeat.stl")
        self.assertIn("total_seconds", payload["timings"])

    def test_preview_peak_height_follows_target(self):
        response = self.client.post(
            "/api/preview",
            json={"route": make_route(), "options": {"targetHeight": 30, "minPathHeight": 2}},
        )
        zs = [v[2] for v in response.get_json()["mesh"]["vertices"]]
        self.assertAlmostEqual(max(zs), 32.0, places=6)

    def test_preview_rejects_short_route(self):
        route = make_route(points=[{"lat": 37.0, "lon": -122.0}])
        response = self.client.post("/api/preview", json={"route": route})
        self.assertEqual(response.status_code, 400)
        self.assertIn("at least 2 points", response.get_json()["error"])

    def test_preview_rejects_unknown_projection(self):
        response = self.client.post("/api/preview", json={"route": make_route(), "options": {"projType": "custom"}})
        self.assertEqual(response.status_code, 400)
        self.assertIn("Unsupported projection type", response.get_json()["error"])

    def test_export_stl_download(self):
        response = self.client.post(
            "/api/export/stl",
            json={"route": make_route(metadata={"elevationMode": "cumulative"}), "options": {"base": 0}},
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn("hill-repeat_cumulative_no-base.stl", response.headers["Content-Disposition"])
        body = response.data
        triangle_count = int.from_bytes(body[80:84], "little")
        self.assertEqual(triangle_count, 8 * 3 + 4)
        self.assertEqual(len(body), 84 + 50 * triangle_count)
        response.close()

    def test_export_rejects_invalid_routes_and_options(self):
        bad_elevation = make_route()
        bad_elevation["points"][1]["elevation"] = "abc"
        below_sea_level = make_route(points=[
            {"lat": 31.50, "lon": 35.45, "elevation": -430},
            {"lat": 31.52, "lon": 35.47, "elevation": -380},
        ])
        cases = [
            ({"route": bad_elevation}, "Invalid route point"),
            ({"route": below_sea_level, "options": {"zcut": False, "base": 0}}, "base top"),
            ({"route": make_route(), "options": {"buffer": "nan"}}, "finite"),
            ({"route": make_route(points=[])}, "at least 2 points"),
        ]
        for payload, message in cases:
            response = self.client.post("/api/export/stl", json=payload)
            self.assertEqual(response.status_code, 400, message)
            self.assertIn(message, response.get_json()["error"])

    def test_upload_gpx(self):
        response = self.client.post(
            "/api/upload",
            data={"file": (io.BytesIO(SAMPLE_GPX), "alps ride.gpx")},
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 200)
        payload = response.get_json()
        self.assertEqual(payload["filename"], "alps_ride.gpx")
        self.assertEqual(len(payload["route"]["points"]), 2)

    def test_upload_rejects_other_files(self):
        response = self.client.post(
            "/api/upload",
            data={"file": (io.BytesIO(b"not gpx"), "notes.txt")},
            content_type="multipart/form-data",
        )
        self.assertEqual(response.status_code, 400)


if __name__ == "__main__":
    unittest.main()
