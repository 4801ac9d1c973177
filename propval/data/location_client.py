import httpx

from .base import AdminAddress, GeoPoint, LocationResolver
from ..core.config import Settings
from ..core.errors import ParseError
from ..core.utils import fnv1a_32, seeded_rand

# (city, district, ward, formatted address) as the listing platform returns them
_MOCK_ADDRESSES = [
    ("ha_noi", "dong_da", "lang_thuong", "Phường Láng Thượng, Quận Đống Đa, Hà Nội"),
    ("ha_noi", "cau_giay", "dich_vong", "Phường Dịch Vọng, Quận Cầu Giấy, Hà Nội"),
    ("ha_noi", "ha_dong", "van_quan", "Phường Văn Quán, Quận Hà Đông, Hà Nội"),
    ("ho_chi_minh", "quan_3", "vo_thi_sau", "Phường Võ Thị Sáu, Quận 3, Hồ Chí Minh"),
    ("ho_chi_minh", "binh_thanh", "phuong_25", "Phường 25, Quận Bình Thạnh, Hồ Chí Minh"),
    ("da_nang", "hai_chau", "thach_thang", "Phường Thạch Thang, Quận Hải Châu, Đà Nẵng"),
]


def auth_headers(token: str | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"} if token else {}


class MockLocation(LocationResolver):
    """
    Deterministic reverse geocoder: the same coordinates always resolve to the
    same administrative address. No network.
    """
    async def resolve(self, point: GeoPoint, token: str | None = None) -> AdminAddress:
        seed = fnv1a_32(f"{round(point.lat, 3)},{round(point.lon, 3)}")
        idx = int(seeded_rand(seed, 1)[0] * len(_MOCK_ADDRESSES)) % len(_MOCK_ADDRESSES)
        city, district, ward, formatted = _MOCK_ADDRESSES[idx]
        return AdminAddress(city=city, district=district, ward=ward, formatted_address=formatted, point=point)


class HttpLocation(LocationResolver):
    """
    Listing platform reverse geocoder:
    GET {base}/features/location?latitude=..&longitude=..
    Feature keys: c=city, d=district, w=ward, dt=formatted address.
    """
    def __init__(self, base_url: str, timeout: float = 10.0):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def resolve(self, point: GeoPoint, token: str | None = None) -> AdminAddress:
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            r = await client.get(
                f"{self.base_url}/features/location",
                params={"latitude": point.lat, "longitude": point.lon},
                headers=auth_headers(token),
            )
            r.raise_for_status()
            features = r.json().get("features") or []
        if not features:
            raise ParseError("location service returned no features", source="location")
        f = features[0]
        return AdminAddress(
            city=f.get("c") or "",
            district=f.get("d") or "",
            ward=f.get("w") or "",
            formatted_address=f.get("dt") or "",
            point=point,
        )


def location_client(settings: Settings) -> LocationResolver:
    """
    Factory picks mock or http based on settings.
    """
    if settings.LOCATION_PROVIDER == "http" and settings.LOCATION_BASE_URL:
        return HttpLocation(settings.LOCATION_BASE_URL, timeout=settings.LOCATION_TIMEOUT_SECONDS)
    return MockLocation()
