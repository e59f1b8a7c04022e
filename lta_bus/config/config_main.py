from dotenv import load_dotenv
import os

load_dotenv()

class DBConfig():
    host: str = os.getenv("POSTGRES_HOST", "")
    port: int = int(os.getenv("POSTGRES_PORT", 5432))
    user: str = os.getenv("POSTGRES_USER", "sa")
    password: str = os.getenv("POSTGRES_PASSWORD", "password")
    database: str = os.getenv("POSTGRES_DB", "busdata")

    @property
    def url(self) -> str:
        """
        SQLAlchemy URL for the bus data store.

        DATABASE_URL wins; otherwise PostgreSQL when POSTGRES_HOST is set,
        falling back to the local SQLite file used by the desktop app.
        """
        explicit = os.getenv("DATABASE_URL")
        if explicit:
            return explicit
        if self.host:
            return (
                f"postgresql+psycopg2://{self.user}:{self.password}"
                f"@{self.host}:{self.port}/{self.database}"
            )
        return "sqlite:///bus_data.db"

db_config = DBConfig()

class LtaConfig():
    api_key: str = os.getenv("LTA_API_KEY", "")
    base_url: str = os.getenv("LTA_BASE_URL", "https://datamall2.mytransport.sg/ltaodataservice")
    page_size: int = int(os.getenv("LTA_PAGE_SIZE", "500"))
    timeout: int = int(os.getenv("LTA_TIMEOUT", "30"))

lta_config = LtaConfig()

class IngestionConfig():
    """Configuration for data ingestion process."""
    chunk_size: int = int(os.getenv("BATCH_CHUNK_SIZE", "500"))
    show_progress: bool = os.getenv("SHOW_PROGRESS", "true").lower() == "true"

ingestion_config = IngestionConfig()
