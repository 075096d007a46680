"""In-process TCP stand-in for the serial bridge, plus frame builders for tests."""

import asyncio

from midea_bridge_lib.const import CMD_STATUS_PUSH
from midea_bridge_lib.protocol import CommandDefinition, decode_frame, encode_frame, encode_push_frame


def bridge_status_payload(
    power=True,
    mode=2,
    target=24,
    fan=3,
    swing=0,
    indoor=22.0,
    outdoor=30.0,
    features=0,
) -> bytes:
    """Status body (after the 0xAC tag) in the bridge firmware layout."""
    data = bytearray(15)
    data[4] = (0x01 if power else 0x00) | ((mode & 0x07) << 1)
    data[5] = (int(target) - 8) & 0x1F
    data[6] = fan & 0x0F
    data[7] = swing
    data[9] = 0xFF if indoor is None else int(indoor * 2) + 80
    data[10] = 0xFF
    data[11] = 0xFF if outdoor is None else int(outdoor * 2) + 80
    data[12] = 0xFF
    data[14] = features
    return bytes(data)


def status_frame(**fields) -> bytes:
    return encode_push_frame(CMD_STATUS_PUSH, bridge_status_payload(**fields))


def response_frame(sequence: int, command: int, payload=b"") -> bytes:
    return encode_frame(CommandDefinition(command, bytes(payload)), sequence=sequence).buffer


class FakeBridge:
    """Accepts client connections, records decoded frames and can push bytes back.

    ``responder(frame)`` may return bytes to send back for each frame received.
    """

    def __init__(self, responder=None):
        self.responder = responder
        self.frames = []
        self.connections = 0
        self.port = None
        self._server = None
        self._writers = []

    async def start(self):
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]
        return self

    async def stop(self):
        await self.drop_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()

    async def push(self, data: bytes):
        for writer in list(self._writers):
            writer.write(data)
            await writer.drain()

    async def drop_clients(self):
        writers, self._writers = self._writers, []
        for writer in writers:
            writer.close()
        await asyncio.sleep(0.01)

    def commands(self):
        return [frame.command for frame in self.frames]

    async def wait_for_frames(self, count: int, timeout: float = 1.0):
        deadline = asyncio.get_running_loop().time() + timeout
        while len(self.frames) < count:
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"expected {count} frames, got {len(self.frames)}")
            await asyncio.sleep(0.005)

    async def wait_for_connections(self, count: int, timeout: float = 1.0):
        deadline = asyncio.get_running_loop().time() + timeout
        while self.connections < count:
            if asyncio.get_running_loop().time() > deadline:
                raise AssertionError(f"expected {count} connections, got {self.connections}")
            await asyncio.sleep(0.005)

    async def _handle(self, reader, writer):
        self.connections += 1
        self._writers.append(writer)
        buffer = bytearray()
        try:
            while True:
                chunk = await reader.read(1024)
                if not chunk:
                    break
                buffer += chunk
                while True:
                    frame = decode_frame(buffer)
                    if frame is None:
                        break
                    del buffer[: frame.frame_length]
                    self.frames.append(frame)
                    reply = self.responder(frame) if self.responder else None
                    if reply:
                        writer.write(reply)
                        await writer.drain()
        except (ConnectionError, OSError):
            pass
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
            writer.close()
