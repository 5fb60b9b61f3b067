from functools import lru_cache
from dispatchquote.core.settings import get_settings
from dispatchquote.repositories.base import BaseMapsAdapter
from dispatchquote.repositories.maps.google_maps import GoogleMapsRepository
from dispatchquote.services.quote import QuoteService


@lru_cache()
def get_maps_adapter() -> BaseMapsAdapter:
    """Get GoogleMapsRepository instance."""
    settings = get_settings()
    return GoogleMapsRepository(
        api_key=settings.GOOGLE_MAPS_API_KEY,
        routes_url=settings.ROUTES_API_URL,
        language=settings.LANGUAGE_CODE,
    )


@lru_cache()
def get_quote_service() -> QuoteService:
    # One process-wide service, so a blocked routing key stays blocked across requests.
    return QuoteService(maps_adapter=get_maps_adapter(), settings=get_settings())

