import pytest

from services import proximity


@pytest.mark.parametrize(
    "query,expected",
    [
        ("Dubai Marina", "Dubai Marina"),
        ("downtown-dubai", "Downtown Dubai"),
        ("דובאי מרינה", "Dubai Marina"),
        ("the palm", "Palm Jumeirah"),
        ("JVC", "JVC"),
    ],
)
def test_area_lookup_is_fuzzy(query, expected):
    assert proximity.area_proximity(query)["area"] == expected


def test_unknown_area():
    assert proximity.area_proximity("Atlantis-on-Mars") is None
    assert proximity.area_proximity("") is None
    assert proximity.landmarks_for("nowhere") == []


def test_walking_distance_landmark():
    burj = proximity.landmarks_for("Downtown Dubai")[0]
    assert burj["distance"] is None
    assert burj["driveTimeHe"] == "מרחק הליכה"


def test_category_filter_and_labels():
    airports = proximity.landmarks_for("Downtown Dubai", "airport")
    assert [lm["driveTime"] for lm in airports] == ["15 min"]
    assert airports[0]["distance"] == round(15 * proximity.KM_PER_MINUTE)
    assert proximity.category_label("airport", "en") == "Airport"
    assert proximity.category_label("airport", "fr") == "שדה תעופה"


def test_areas_api(client):
    areas = client.get("/api/proximity/areas").get_json()["data"]
    assert {"en": "JBR", "he": "ג׳ומיירה ביץ׳ רזידנס"} in areas

    body = client.get("/api/proximity?area=marina&category=airport&lang=en").get_json()
    assert body["data"]["area"] == "Dubai Marina"
    assert all(lm["categoryLabel"] == "Airport" for lm in body["data"]["landmarks"])

    assert client.get("/api/proximity?area=mars").status_code == 404
