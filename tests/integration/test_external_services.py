from uuid import uuid4

import httpx
import pytest

from mealrelay.domain.value_objects.geo import GeoPoint
from mealrelay.infrastructure.external_services.dispatch_partner_service import HttpDispatchPartnerClient
from mealrelay.infrastructure.external_services.geocoding_service import GoogleDistanceMatrixService
from mealrelay.infrastructure.external_services.notification_service import HttpNotificationService

KITCHEN = GeoPoint(40.7128, -74.0060)
DOORSTEP = GeoPoint(40.6948, -74.0060)


def distance_matrix(handler):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return GoogleDistanceMatrixService(api_key="test-key", timeout=1.0, client=client)


class TestDistanceMatrix:
    async def test_uses_route_from_response(self):
        seen = {}

        def handler(request):
            seen["origins"] = request.url.params["origins"]
            return httpx.Response(200, json={"rows": [{"elements": [{
                "status": "OK",
                "distance": {"value": 3120},
                "duration": {"value": 545},
            }]}]})

        estimate = await distance_matrix(handler).distance_and_eta_between(KITCHEN, DOORSTEP)

        assert (estimate.distance_km, estimate.minutes, estimate.source) == (3.12, 10, "route_service")
        assert seen["origins"] == "40.7128,-74.006"

    @pytest.mark.parametrize("response", [
        httpx.Response(500),
        httpx.Response(200, json={"rows": []}),
        httpx.Response(200, json={"rows": [{"elements": [{"status": "ZERO_RESULTS"}]}]}),
    ])
    async def test_falls_back_to_straight_line(self, response):
        estimate = await distance_matrix(lambda request: response).distance_and_eta_between(KITCHEN, DOORSTEP)

        assert estimate.source == "haversine"
        assert estimate.distance_km == pytest.approx(2.0, abs=0.01)
        assert estimate.minutes == 3

    async def test_no_api_key_means_straight_line(self, monkeypatch):
        monkeypatch.setattr("mealrelay.core.config.settings.GOOGLE_MAPS_API_KEY", None)
        estimate = await GoogleDistanceMatrixService().distance_and_eta_between(KITCHEN, DOORSTEP)
        assert estimate.source == "haversine"


async def test_unconfigured_collaborators_are_no_ops():
    await HttpNotificationService(base_url="").notify(uuid4(), "order.placed", {})
    await HttpDispatchPartnerClient(base_url="").request_delivery({"order_id": "x"})
