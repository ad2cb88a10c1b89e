"""FastAPI application entry point for the document attachment service."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI

from server.app_factory import app_version, create_app, wire_services
from shared.clients.ClientInterface import ClientInterface
from shared.clients.blob.BlobClientManager import BlobClientManager
from shared.clients.extract.ExtractClientManager import ExtractClientManager
from shared.clients.meta.MetaClientManager import MetaClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging

logging = setup_logging()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    helper_config = HelperConfig(logger=logging)

    blob_client = BlobClientManager(helper_config=helper_config).get_client()
    meta_client = MetaClientManager(helper_config=helper_config).get_client()
    extract_clients = ExtractClientManager(helper_config=helper_config).get_clients()
    clients: list[ClientInterface] = [blob_client, meta_client, *extract_clients]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    logging.info("All clients booted successfully.")

    wire_services(
        app,
        helper_config=helper_config,
        blob_client=blob_client,
        meta_client=meta_client,
        extract_clients=extract_clients,
    )

    await check_connections(clients)

    # while the app is running...
    yield

    # when the app shuts down, close all client connections
    logging.info("Shutting down, closing all clients...")
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = create_app(lifespan=lifespan)


async def check_connections(clients: list[ClientInterface]) -> None:
    """Check connectivity to all configured backends on startup.

    Extraction engine failures are non-fatal (uploads still work, the text is
    just not searchable). Blob and metadata store failures are fatal.

    Raises:
        Exception: If the blob store or the metadata store is not reachable.
    """
    for client in clients:
        if await client.do_healthcheck():
            continue
        name = f"{client.get_client_type()} client '{client.__class__.__name__}'"
        if client.get_client_type() == "extract":
            logging.warning("%s is not reachable. Text extraction may fail.", name)
        else:
            raise Exception(f"{name} is not reachable. Cannot serve requests.")


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting doc_attachment_service API Server v%s from root dir: %s on port %s...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
        os.environ.get("API_SERVER_PORT", "8000"),
    )
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("API_SERVER_PORT", "8000")))
