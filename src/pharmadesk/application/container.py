from __future__ import annotations

from dataclasses import dataclass

import requests

from pharmadesk.config import ApiSettings, AppPaths
from pharmadesk.repositories.sqlite_repo import SqliteRepository
from pharmadesk.services.api_client import ApiClient
from pharmadesk.services.device_identity import DeviceIdentityService
from pharmadesk.services.income_service import IncomeService
from pharmadesk.services.layout_persistence import build_layout_persistence
from pharmadesk.services.print_layout_service import PrintLayoutStore
from pharmadesk.services.printer_service import ReceiptPrinter, select_printer
from pharmadesk.services.session_service import SessionService


@dataclass(frozen=True)
class AppContainer:
    settings: ApiSettings
    repo: SqliteRepository
    api: ApiClient
    device: DeviceIdentityService
    session: SessionService
    layout: PrintLayoutStore
    income: IncomeService
    printer: ReceiptPrinter

    def shutdown(self) -> None:
        try:
            self.printer.close()
        finally:
            self.api.close()


def build_container(
    paths: AppPaths,
    settings: ApiSettings | None = None,
    platform_name: str = "desktop",
    http_session: requests.Session | None = None,
) -> AppContainer:
    settings = settings or ApiSettings.from_env()

    repo = SqliteRepository(paths.db_path)
    repo.init_db()

    api = ApiClient(settings.base_url, repo, timeout=settings.timeout, session=http_session)
    device = DeviceIdentityService(repo)
    session = SessionService(api, repo, device_identity=device)

    persistence = build_layout_persistence(settings.layout_mode, repo=repo, api=api, identity=device, session=session)
    layout = PrintLayoutStore(persistence)
    layout.load()

    income = IncomeService(api)
    printer = select_printer(
        platform_name,
        output_dir=paths.receipts_dir,
        config_source=lambda: layout.config,
        agent_ports=settings.agent_ports,
    )

    return AppContainer(
        settings=settings,
        repo=repo,
        api=api,
        device=device,
        session=session,
        layout=layout,
        income=income,
        printer=printer,
    )
