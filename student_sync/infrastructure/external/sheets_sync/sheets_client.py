"""
Cliente de lectura de Google Sheets con tres estrategias de transporte.

- PUBLIC_CSV: export CSV público (requests)
- API_KEY: endpoint values de Sheets API v4 con API key (requests)
- SERVICE_ACCOUNT: Sheets API autenticada (google-auth + gspread)

Reintentos acotados y comunes a las tres: tope de intentos fijo, backoff
lineal (attempt * backoff_s). Cualquier status no-2xx o error de transporte
se reintenta (incluye SpreadsheetNotFound de gspread y TransportError de
google-auth); al agotar el tope se propaga FetchError. Los 401/403 de la
estrategia autenticada se traducen a AuthError y no se reintentan.
"""

from __future__ import annotations

import time
from typing import Any, Callable, Optional, TypeVar
from urllib.parse import quote

import gspread
import gspread.exceptions
import requests
from google.auth.exceptions import RefreshError, TransportError
from google.oauth2 import service_account
from loguru import logger

from student_sync.core.config import (
    SHEETS_READONLY_SCOPE,
    ApiKeySource,
    PublicCsvSource,
    ServiceAccountSource,
    SourceConfig,
)
from student_sync.shared.exceptions.sync import AuthError, EmptySourceError, FetchError

from .csv_parser import parse_csv, values_to_raw_table
from .types import RawTable

T = TypeVar("T")

CSV_EXPORT_URL = "https://docs.google.com/spreadsheets/d/{sheet_id}/export"
SHEETS_API_BASE = "https://sheets.googleapis.com/v4/spreadsheets"


class HttpStatusError(RuntimeError):
    """Respuesta no-2xx de la fuente (recuperable mediante reintento)."""

    def __init__(self, status_code: int, body: str = "") -> None:
        self.status_code = status_code
        super().__init__(f"HTTP {status_code}: {body[:300]}")


GspreadClientFactory = Callable[[dict[str, Any]], gspread.Client]


def default_gspread_client(credentials_info: dict[str, Any]) -> gspread.Client:
    """Cliente gspread con credencial de service account de solo lectura."""
    credentials = service_account.Credentials.from_service_account_info(
        credentials_info,
        scopes=[SHEETS_READONLY_SCOPE],
    )
    return gspread.authorize(credentials)


class GoogleSheetsClient:
    """
    Lee la hoja configurada y devuelve una RawTable.

    Importante:
    - No cachea nada: cada fetch() va a la red.
    - No interpreta tipos: todas las celdas salen como string.
    """

    def __init__(
        self,
        source: SourceConfig,
        *,
        session: Optional[requests.Session] = None,
        gspread_client_factory: Optional[GspreadClientFactory] = None,
        max_retries: int = 3,
        backoff_s: float = 0.5,
        timeout_s: float = 30,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if max_retries < 1:
            raise ValueError("max_retries debe ser >= 1")
        self._source = source
        self._session = session or requests.Session()
        self._gspread_factory = gspread_client_factory or default_gspread_client
        self._max_retries = max_retries
        self._backoff_s = backoff_s
        self._timeout_s = timeout_s
        self._sleep = sleep

    @property
    def strategy(self) -> str:
        return self._source.strategy.value

    def fetch(self) -> RawTable:
        """Lee la hoja con la estrategia configurada."""
        source = self._source
        if isinstance(source, ServiceAccountSource):
            logger.info("Leyendo hoja via Google Sheets API con Service Account...")
            values = self._with_retry(lambda: self._fetch_values_service_account(source))
            table = self._table_from_values(values, "Sheets API devolvio values vacios")
        elif isinstance(source, ApiKeySource):
            logger.info("Leyendo hoja via Google Sheets API (endpoint values)...")
            values = self._with_retry(lambda: self._fetch_values_api_key(source))
            table = self._table_from_values(values, "Estructura invalida: la API no devolvio values")
        elif isinstance(source, PublicCsvSource):
            logger.info("Leyendo hoja via export CSV publico...")
            text = self._with_retry(lambda: self._fetch_csv(source))
            if not text or not text.strip():
                raise EmptySourceError("Estructura invalida: CSV vacio")
            table = parse_csv(text)
        else:
            raise TypeError(f"Estrategia de fuente no soportada: {type(source).__name__}")

        logger.info(f"Lectura OK. Filas crudas (sin header): {len(table.rows)}")
        return table

    # ------------------------------------------------------------------
    # Transportes
    # ------------------------------------------------------------------

    def _fetch_csv(self, source: PublicCsvSource) -> str:
        url = CSV_EXPORT_URL.format(sheet_id=source.sheet_id)
        resp = self._session.get(
            url,
            params={"format": "csv", "gid": source.gid},
            timeout=self._timeout_s,
        )
        self._raise_for_status(resp)
        return resp.text

    def _fetch_values_api_key(self, source: ApiKeySource) -> list[list[Any]]:
        url = f"{SHEETS_API_BASE}/{source.sheet_id}/values/{quote(source.cell_range, safe='')}"
        resp = self._session.get(url, params={"key": source.api_key}, timeout=self._timeout_s)
        self._raise_for_status(resp)
        payload = resp.json() or {}
        return payload.get("values") or []

    def _fetch_values_service_account(self, source: ServiceAccountSource) -> list[list[Any]]:
        share_hint = (
            "Sheets API denego el permiso (403). Comparte la hoja con el email del "
            f"service account: {source.client_email or '(desconocido)'}"
        )
        try:
            client = self._gspread_factory(source.credentials_info)
            spreadsheet = client.open_by_key(source.sheet_id)
            payload = spreadsheet.values_get(source.cell_range) or {}
        except PermissionError as e:
            # gspread 6 traduce el 403 de open_by_key al builtin PermissionError.
            raise AuthError(share_hint, status_code=403) from e
        except gspread.exceptions.APIError as e:
            status = _api_error_status(e)
            if status == 401:
                raise AuthError(
                    "Sheets API rechazo la autenticacion (401). Revisa las credenciales del service account.",
                    status_code=401,
                ) from e
            if status == 403:
                raise AuthError(share_hint, status_code=403) from e
            raise
        except RefreshError as e:
            raise AuthError(
                f"No se pudo obtener token del service account. Revisa las credenciales: {e}"
            ) from e
        return payload.get("values") or []

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _with_retry(self, operation: Callable[[], T]) -> T:
        """
        Ejecuta operation con hasta max_retries intentos y backoff lineal.
        AuthError se propaga sin reintentar.
        """
        last_error: Optional[BaseException] = None
        for attempt in range(1, self._max_retries + 1):
            try:
                return operation()
            except AuthError:
                raise
            except (
                requests.RequestException,
                HttpStatusError,
                gspread.exceptions.GSpreadException,
                TransportError,
                ValueError,
            ) as e:
                last_error = e
                if attempt >= self._max_retries:
                    break
                delay = attempt * self._backoff_s
                logger.warning(
                    f"Fallo de lectura (intento {attempt}/{self._max_retries}): {e}. "
                    f"Reintentando en {delay:.1f}s"
                )
                self._sleep(delay)

        raise FetchError(
            f"No se pudo leer la hoja tras {self._max_retries} intentos: {last_error}",
            attempts=self._max_retries,
        ) from last_error

    @staticmethod
    def _raise_for_status(resp: requests.Response) -> None:
        if not 200 <= resp.status_code < 300:
            raise HttpStatusError(resp.status_code, resp.text or "")

    @staticmethod
    def _table_from_values(values: list[list[Any]], empty_message: str) -> RawTable:
        if not values:
            raise EmptySourceError(empty_message)
        return values_to_raw_table(values)


def _api_error_status(error: gspread.exceptions.APIError) -> Optional[int]:
    response = getattr(error, "response", None)
    status = getattr(response, "status_code", None)
    if status is None:
        status = getattr(error, "code", None)
    try:
        return int(status) if status is not None else None
    except (TypeError, ValueError):
        return None
