from pydantic_settings import BaseSettings


DEFAULT_USER_AGENT = "github:FlippingBinary/atproto-labeler-diagnostics"


class Settings(BaseSettings):
    user_agent: str = DEFAULT_USER_AGENT
    atproto_pds: str = "https://bsky.social"
    # PLC directory used to resolve did:plc identities
    atproto_plc: str = "https://plc.directory"
    # Overall deadline for each pipeline, in seconds
    request_timeout: float = 15.0


def load_settings() -> Settings:
    return Settings()
