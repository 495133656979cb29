from pydantic_settings import BaseSettings

REVIEWS_URL = "https://www.booking.com/reviews/ke/hotel/rafiki-house.html"
HOTEL_URL = "https://www.booking.com/hotel/ke/rafiki-house.html"


class Settings(BaseSettings):
    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    log_level: str = "INFO"

    mpesa_consumer_key: str = ""
    mpesa_consumer_secret: str = ""
    mpesa_passkey: str = ""
    mpesa_base_url: str = "https://sandbox.safaricom.co.ke"
    mpesa_shortcode: str = "174379"
    mpesa_callback_url: str = "https://dqpvnfzjvdesikpuibab.supabase.co/functions/v1/mpesa-pay"
    mpesa_account_reference: str = "RafikiHouse"
    mpesa_transaction_desc: str = "Booking Payment"
    mpesa_timezone: str = "UTC"

    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_service_role_key: str = ""

    firecrawl_api_key: str = ""
    lovable_api_key: str = ""
    ai_gateway_url: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    ai_model: str = "google/gemini-2.5-flash"

    property_name: str = "Rafiki House Nanyuki"
    review_source_urls: list[str] = [
        REVIEWS_URL,
        f"{REVIEWS_URL}?page=2",
        f"{REVIEWS_URL}?page=3",
        HOTEL_URL,
    ]
    review_search_query: str = "Rafiki House Nanyuki Kenya guest reviews booking.com"
    review_search_limit: int = 5
