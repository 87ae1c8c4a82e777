"""
Microsoft SQL Server Adapter for ssql

Features:
- SQL Authentication and Windows Authentication (pyodbc)
- SSL/TLS encryption for Azure SQL
- @pN placeholders converted to the driver's paramstyle
- Blocking driver calls offloaded to worker threads

Requirements:
    pip install pymssql
    # or for full ODBC support:
    pip install pyodbc
"""

import logging
from typing import Any, Dict, Optional

# Try pymssql first (simpler, no ODBC config needed)
try:
    import pymssql
    PYMSSQL_AVAILABLE = True
except ImportError:
    PYMSSQL_AVAILABLE = False
    pymssql = None

# Fall back to pyodbc
try:
    import pyodbc
    PYODBC_AVAILABLE = True
except ImportError:
    PYODBC_AVAILABLE = False
    pyodbc = None

from ssql.adapters.base import BaseAdapter
from ssql.core.config import Settings, get_settings
from ssql.errors import DriverError, ErrorCode

logger = logging.getLogger(__name__)


class SQLServerAdapter(BaseAdapter):
    """
    Adapter for Microsoft SQL Server.

    Supports SQL Server 2012+ and Azure SQL Database.

    Config options:
        host: Server hostname or IP (required)
        port: Server port (default: 1433)
        database: Database name (required)
        user: Username (required for SQL auth)
        password: Password (required for SQL auth)
        use_pyodbc: Use pyodbc instead of pymssql (default: False)
        driver: ODBC driver name (for pyodbc)
        trusted_connection: Use Windows auth, pyodbc only (default: False)
        encrypt: Encrypt connection (default: True for Azure)
        trust_server_certificate: Trust self-signed certs (default: False)
        connection_timeout: Login timeout in seconds (default: 30)
        application_name: Application identifier (default: 'ssql')

    Example:
        async with SQLServerAdapter({
            "host": "sqlserver.company.com",
            "database": "analytics",
            "user": "bi_user",
            "password": "secret"
        }) as conn:
            rows = await Customer.query().find_all(conn)
    """

    ENGINE = "sqlserver"
    PLACEHOLDER = "%s"

    def __init__(self, config: Dict[str, Any]):
        """Initialize SQL Server adapter."""
        super().__init__(config)

        # Determine driver
        self.use_pyodbc = config.get("use_pyodbc", False)

        if self.use_pyodbc:
            if not PYODBC_AVAILABLE:
                raise DriverError(
                    code=ErrorCode.ERR_DRIVER_MISSING,
                    message="pyodbc not installed. Run: pip install pyodbc",
                    engine=self.ENGINE,
                )
        else:
            if not PYMSSQL_AVAILABLE:
                if PYODBC_AVAILABLE:
                    self.use_pyodbc = True
                    logger.info("pymssql not available, using pyodbc")
                else:
                    raise DriverError(
                        code=ErrorCode.ERR_DRIVER_MISSING,
                        message="Neither pymssql nor pyodbc installed. Run: pip install pymssql",
                        engine=self.ENGINE,
                    )

        # Validate required config
        self.trusted_connection = config.get("trusted_connection", False)
        required = ["host", "database"] if self.trusted_connection else ["host", "database", "user", "password"]
        missing = [k for k in required if config.get(k) is None]
        if missing:
            raise DriverError(
                code=ErrorCode.ERR_CONNECTION_FAILED,
                message=f"Missing required config: {', '.join(missing)}",
                engine=self.ENGINE,
            )

        # Connection settings
        self.host = config["host"]
        self.port = config.get("port", 1433)
        self.database = config["database"]
        self.user = config.get("user", "")
        self.password = config.get("password", "")

        # SSL/Encryption
        self.azure = config.get("azure", "database.windows.net" in self.host.lower())
        self.encrypt = config.get("encrypt", self.azure)
        self.trust_server_certificate = config.get("trust_server_certificate", False)

        self.connection_timeout = config.get("connection_timeout", 30)
        self.application_name = config.get("application_name", "ssql")
        self.driver = config.get("driver", "ODBC Driver 18 for SQL Server")

        # pyodbc binds with ?, pymssql with %s
        self.PLACEHOLDER = "?" if self.use_pyodbc else "%s"

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **overrides: Any) -> "SQLServerAdapter":
        """Build an adapter from Settings (SSQL_* environment variables)."""
        settings = settings or get_settings()
        config: Dict[str, Any] = {
            "host": settings.host,
            "port": settings.port,
            "database": settings.database,
            "user": settings.user,
            "password": settings.password,
            "use_pyodbc": settings.use_pyodbc,
            "driver": settings.odbc_driver,
            "connection_timeout": settings.login_timeout,
            "application_name": settings.application_name,
        }
        config.update(overrides)
        return cls(config)

    def _get_pyodbc_connection_string(self) -> str:
        """Build ODBC connection string."""
        parts = [
            f"DRIVER={{{self.driver}}}",
            f"SERVER={self.host},{self.port}",
            f"DATABASE={self.database}",
            f"APP={self.application_name}",
        ]

        if self.trusted_connection:
            parts.append("Trusted_Connection=yes")
        else:
            parts.append(f"UID={self.user}")
            parts.append(f"PWD={self.password}")

        if self.encrypt:
            parts.append("Encrypt=yes")

        if self.trust_server_certificate:
            parts.append("TrustServerCertificate=yes")

        return ";".join(parts)

    def _open(self) -> Any:
        """Connect to SQL Server."""
        try:
            if self.use_pyodbc:
                connection = pyodbc.connect(
                    self._get_pyodbc_connection_string(),
                    timeout=self.connection_timeout,
                    autocommit=True,
                )
            else:
                conn_params = {
                    "server": self.host,
                    "port": str(self.port),
                    "database": self.database,
                    "user": self.user,
                    "password": self.password,
                    "login_timeout": self.connection_timeout,
                    "appname": self.application_name,
                    "as_dict": False,  # rows are zipped with cursor.description
                    "autocommit": True,
                }

                # Azure requires encryption
                if self.azure or self.encrypt:
                    conn_params["tds_version"] = "7.3"

                connection = pymssql.connect(**conn_params)
        except Exception as e:
            raise DriverError(
                code=ErrorCode.ERR_CONNECTION_FAILED,
                message=f"Failed to connect to SQL Server: {e}",
                engine=self.ENGINE,
                original_error=e,
            ) from e

        logger.info(f"SQL Server connected: {self.host}:{self.port}/{self.database}")
        return connection

    def _escape_literal(self, text: str) -> str:
        # pymssql interpolates %s itself, so a literal % must be doubled
        if self.use_pyodbc:
            return text
        return text.replace("%", "%%")

    def get_engine_info(self) -> Dict[str, Any]:
        info = super().get_engine_info()
        info.update({
            "host": self.host,
            "database": self.database,
            "driver": "pyodbc" if self.use_pyodbc else "pymssql",
        })
        return info


# Aliases
SQLServerConnection = SQLServerAdapter
MSSQLAdapter = SQLServerAdapter


async def get_client(
    user: str,
    password: str,
    host: str,
    database: str,
    **config: Any,
) -> SQLServerAdapter:
    """
    Open a connection to SQL Server.

    Example:
        conn = await get_client("username", "password", "host", "database")
    """
    adapter = SQLServerAdapter({
        "user": user,
        "password": password,
        "host": host,
        "database": database,
        **config,
    })
    await adapter.connect()
    return adapter
