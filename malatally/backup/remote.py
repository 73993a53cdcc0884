"""Remote backup store: WebSocket client and profile backup/restore."""

import asyncio
import base64
import json
import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional
from urllib.parse import urlsplit, urlunsplit

import websockets
from websockets.exceptions import WebSocketException

from ..engine.session import Session
from ..engine.tally import Confirm, RestoreOutcome, TallyEngine
from ..errors import BackupInvalid, RemoteUnavailable

logger = logging.getLogger(__name__)

SOCKET_PATH = "v1/files/socket"
SOCKET_SCHEMES = {"http": "ws", "https": "wss", "ws": "ws", "wss": "wss"}


def socket_url(base_url: str) -> str:
    """Files socket endpoint under a store's base URL."""
    parts = urlsplit(base_url)
    scheme = SOCKET_SCHEMES.get(parts.scheme)
    if scheme is None:
        raise ValueError(f"Unsupported remote store URL: {base_url}")
    path = parts.path.rstrip("/") + "/" + SOCKET_PATH
    return urlunsplit((scheme, parts.netloc, path, "", ""))


class RemoteStoreClient:
    """WebSocket client for the remote file store.

    Files live in an application-private folder and are addressed by id.
    Contents travel base64-encoded inside JSON commands.
    """

    def __init__(self, url: str, token: str, folder: str = "appDataFolder"):
        """
        Initialize client.

        Args:
            url: Store URL (e.g., https://backup.example.com)
            token: Access token
            folder: Application folder all files are scoped to
        """
        self.url = url
        self.token = token
        self.folder = folder
        self.ws_url = socket_url(url)
        self.websocket = None
        self._message_id = 0

    async def connect(self):
        """Open the socket and authenticate; the socket is closed again on failure."""
        logger.info(f"Connecting to {self.ws_url}")
        self.websocket = await websockets.connect(self.ws_url)
        try:
            await self._authenticate()
        except BaseException:
            await self.disconnect()
            raise
        logger.info("Connected to remote store")

    async def _authenticate(self):
        greeting = await self._receive()
        if greeting.get("type") != "auth_required":
            raise RemoteUnavailable(f"Unexpected greeting: {greeting}")

        await self.websocket.send(json.dumps({"type": "auth", "access_token": self.token}))

        verdict = await self._receive()
        if verdict.get("type") != "auth_ok":
            raise RemoteUnavailable(f"Authentication failed: {verdict.get('message')}")

    async def disconnect(self):
        if self.websocket:
            await self.websocket.close()
            self.websocket = None
            logger.info("Disconnected from remote store")

    async def _receive(self) -> dict:
        return json.loads(await self.websocket.recv())

    async def send_command(self, command_type: str, **kwargs) -> dict:
        """
        Send a file command and return its result.

        Replies carry the id of the command they answer; anything else on the
        socket is skipped.

        Raises:
            RemoteUnavailable: Not connected, or the store rejected the command
        """
        if not self.websocket:
            raise RemoteUnavailable("Not connected to remote store")

        self._message_id += 1
        command_id = self._message_id
        logger.debug(f"{command_type} -> #{command_id}")
        await self.websocket.send(json.dumps({"id": command_id, "type": command_type, **kwargs}))

        reply = await self._receive()
        while reply.get("id") != command_id:
            reply = await self._receive()

        if not reply.get("success"):
            logger.error(f"{command_type} #{command_id} rejected: {reply}")
            raise RemoteUnavailable(f"{command_type} failed: {reply.get('error', 'unknown error')}")
        return reply.get("result", {})

    async def list_files(self, name: str) -> list[dict]:
        """Files whose name equals ``name``, as ``{"id", "name"}`` dicts."""
        return await self.send_command("files/list", folder=self.folder, name=name)

    async def create_file(self, name: str, content: bytes) -> str:
        result = await self.send_command(
            "files/create",
            folder=self.folder,
            name=name,
            content=base64.b64encode(content).decode("ascii"),
        )
        return result["id"]

    async def update_file(self, file_id: str, content: bytes):
        await self.send_command(
            "files/update",
            file_id=file_id,
            content=base64.b64encode(content).decode("ascii"),
        )

    async def get_file(self, file_id: str) -> bytes:
        result = await self.send_command("files/get", file_id=file_id)
        return base64.b64decode(result["content"])



@dataclass(frozen=True)
class SyncResult:
    """User-visible outcome of a backup or restore request."""

    ok: bool
    message: str
    file_id: Optional[str] = None


# Network and protocol failures; reported, never retried
REMOTE_ERRORS = (
    RemoteUnavailable,
    WebSocketException,
    OSError,
    asyncio.TimeoutError,
    KeyError,
    ValueError,
)


def backup_name(profile_id: str) -> str:
    """Remote file name for a profile's backup."""
    return f"malatally_backup_{profile_id}.json"


class RemoteBackupService:
    """Backs profiles up to, and restores them from, the remote store.

    One file per profile, updated in place. Only one request runs at a time;
    a request made while another is in flight is rejected.
    """

    def __init__(self, client: RemoteStoreClient, engine: TallyEngine):
        self.client = client
        self.engine = engine
        self.in_flight = False

    @asynccontextmanager
    async def _connected(self):
        try:
            await self.client.connect()
            yield self.client
        finally:
            await self.client.disconnect()

    async def find_remote(self, name: str) -> Optional[str]:
        files = await self.client.list_files(name)
        for entry in files:
            if entry.get("name") == name:
                return entry["id"]
        return None

    async def put_remote(self, file_id: Optional[str], name: str, content: bytes) -> str:
        """Create the file if ``file_id`` is None, otherwise update it."""
        if file_id is None:
            file_id = await self.client.create_file(name, content)
            logger.info(f"Created remote backup {name} ({file_id})")
        else:
            await self.client.update_file(file_id, content)
            logger.info(f"Updated remote backup {name} ({file_id})")
        return file_id

    async def get_remote(self, file_id: str) -> bytes:
        return await self.client.get_file(file_id)

    async def backup(self, session: Session) -> SyncResult:
        """Upload the session profile's current state."""
        if self.in_flight:
            return SyncResult(ok=False, message="A backup or restore is already running")

        self.in_flight = True
        name = backup_name(session.profile_id)
        try:
            content = self.engine.export_profile(session)
            async with self._connected():
                file_id = await self.find_remote(name)
                file_id = await self.put_remote(file_id, name, content)
        except REMOTE_ERRORS as e:
            logger.error(f"Remote backup of {session.profile_id} failed: {e}")
            return SyncResult(ok=False, message=f"Backup failed: {e}")
        finally:
            self.in_flight = False

        return SyncResult(ok=True, message="Backup complete", file_id=file_id)

    async def restore(self, session: Session, confirm: Confirm) -> SyncResult:
        """Download the session profile's backup and restore it."""
        if self.in_flight:
            return SyncResult(ok=False, message="A backup or restore is already running")

        self.in_flight = True
        name = backup_name(session.profile_id)
        try:
            async with self._connected():
                file_id = await self.find_remote(name)
                content = await self.get_remote(file_id) if file_id else None
        except REMOTE_ERRORS as e:
            logger.error(f"Remote restore of {session.profile_id} failed: {e}")
            return SyncResult(ok=False, message=f"Restore failed: {e}")
        finally:
            self.in_flight = False

        if content is None:
            return SyncResult(ok=False, message="No backup found")

        try:
            outcome = self.engine.restore(session, content, confirm)
        except BackupInvalid as e:
            return SyncResult(ok=False, message=str(e), file_id=file_id)

        if outcome == RestoreOutcome.CANCELLED:
            return SyncResult(ok=False, message="Restore cancelled", file_id=file_id)
        if outcome == RestoreOutcome.SUPERSEDED:
            return SyncResult(
                ok=False,
                message="Restore abandoned: another profile was opened meanwhile",
                file_id=file_id,
            )
        return SyncResult(ok=True, message="Restore complete", file_id=file_id)
