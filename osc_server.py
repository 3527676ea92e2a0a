import asyncio
import logging
import time
from socket import AF_INET, SOCK_DGRAM, socket
from typing import Any, Callable, Optional

from pythonosc import dispatcher
from pythonosc.osc_server import AsyncIOOSCUDPServer

from value_types import FrequencyValueTypes

ip_str = None

# Server transport so we can close it from another task
server_transport: Optional[object] = None

# Bind configuration (defaults)
_bind_address: Optional[str] = None
_bind_port: int = 9000
_bind_endpoint: str = "/frequency"
_bind_value_type: str = FrequencyValueTypes.INT.value
_debug_mode: bool = False

# Anything with an ``add(time, frequency) -> bool`` method, usually a WindowedAggregator
_sink: Optional[Any] = None

# Event callbacks
_status_callbacks = []  # callbacks(status: bool)
_ip_callbacks = []  # callbacks(ip_str: str)
_message_callbacks = []  # callbacks(message: dict)

logger = logging.getLogger("OSC Server")
# Do not set logger.setLevel() here; logging level is inherited from main.py
handler_logger = logging.getLogger("OSC Handlers")


def get_ip_address():
    logger.debug("get_ip_address called")
    s = socket(AF_INET, SOCK_DGRAM)
    try:
        s.connect(("8.8.8.8", 80))
        return s.getsockname()[0]
    except OSError:
        logger.warning("Could not detect a network address, binding to loopback")
        return "127.0.0.1"
    finally:
        s.close()


def set_sink(sink: Optional[Any]):
    """Set the receiver of decoded samples (``None`` detaches it)."""
    logger.debug("set_sink called with sink: %s", sink)
    global _sink
    _sink = sink


def set_debug_mode(enabled: bool):
    logger.debug("set_debug_mode called with enabled: %s", enabled)
    global _debug_mode
    _debug_mode = enabled


def set_bind_address(
    addr: Optional[str],
    port: int = 9000,
    endpoint: str = "/frequency",
    value_type: str = FrequencyValueTypes.INT.value,
):
    """Set the address, port, endpoint and payload type used when starting the server.

    addr may be None to auto-detect the local address.
    """
    logger.debug(
        "set_bind_address called with addr: %s, port: %s, endpoint: %s, value_type: %s",
        addr,
        port,
        endpoint,
        value_type,
    )
    global _bind_address, _bind_port, _bind_endpoint, _bind_value_type
    _bind_address = addr or None
    _bind_port = int(port)
    _bind_endpoint = endpoint
    _bind_value_type = value_type


def get_bind_address():
    logger.debug("get_bind_address called")
    return _bind_address, _bind_port, _bind_endpoint, _bind_value_type


def _deliver(addr: str, sample_time: float, frequency: int):
    accepted = False
    if _sink is None:
        handler_logger.debug("No sink attached, dropping sample from %s", addr)
    else:
        try:
            accepted = bool(_sink.add(sample_time, frequency))
        except Exception:
            handler_logger.exception("Sink rejected sample from %s", addr)
    _notify_message(
        {
            "time": sample_time,
            "endpoint": addr,
            "frequency": frequency,
            "accepted": accepted,
        }
    )


def debug_handler(addr, *message):
    handler_logger.debug("Debug handler received message on %s: %s", addr, message)


def int_handler(addr, *message):
    handler_logger.debug("int_handler called with addr: %s, message: %s", addr, message)
    try:
        frequency = int(message[0])
    except (IndexError, TypeError, ValueError, OverflowError):
        handler_logger.warning("Malformed int message on %s: %s", addr, message)
        return
    _deliver(addr, time.time(), frequency)


def float_handler(addr, *message):
    handler_logger.debug(
        "float_handler called with addr: %s, message: %s", addr, message
    )
    try:
        frequency = int(round(float(message[0])))
    except (IndexError, TypeError, ValueError, OverflowError):
        handler_logger.warning("Malformed float message on %s: %s", addr, message)
        return
    _deliver(addr, time.time(), frequency)


def timestamped_handler(addr, *message):
    handler_logger.debug(
        "timestamped_handler called with addr: %s, message: %s", addr, message
    )
    try:
        sample_time = float(message[0])
        frequency = int(message[1])
    except (IndexError, TypeError, ValueError, OverflowError):
        handler_logger.warning("Malformed timestamped message on %s: %s", addr, message)
        return
    _deliver(addr, sample_time, frequency)


_VALUE_TYPE_HANDLERS: dict[str, Callable[..., Any]] = {
    FrequencyValueTypes.INT.value: int_handler,
    "integer": int_handler,
    FrequencyValueTypes.FLOAT.value: float_handler,
    FrequencyValueTypes.TIMESTAMPED.value: timestamped_handler,
    "debug": debug_handler,
}


def _get_handler_for_value_type(value_type: Optional[str]) -> Callable[..., Any]:
    key = (value_type or "").lower()
    handler = _VALUE_TYPE_HANDLERS.get(key)
    if handler is None:
        logger.warning("Unknown value type '%s', using int handler", value_type)
        return int_handler
    return handler


def register_status_callback(cb):
    """Register a callback (status: bool) notified when the server starts/stops."""
    if cb not in _status_callbacks:
        _status_callbacks.append(cb)


def unregister_status_callback(cb):
    if cb in _status_callbacks:
        _status_callbacks.remove(cb)


def register_ip_callback(cb):
    """Register a callback (ip_str: str) notified when the bound address changes."""
    if cb not in _ip_callbacks:
        _ip_callbacks.append(cb)


def unregister_ip_callback(cb):
    if cb in _ip_callbacks:
        _ip_callbacks.remove(cb)


def register_message_callback(cb):
    """Register a callback (message: dict) notified for every decoded sample."""
    if cb not in _message_callbacks:
        _message_callbacks.append(cb)


def unregister_message_callback(cb):
    if cb in _message_callbacks:
        _message_callbacks.remove(cb)


def _notify_status(running: bool):
    logger.debug("_notify_status called with running: %s", running)
    for cb in list(_status_callbacks):
        try:
            cb(running)
        except Exception:
            logger.error("Error in status callback")


def _notify_ip(ip: str):
    logger.debug("_notify_ip called with ip: %s", ip)
    for cb in list(_ip_callbacks):
        try:
            cb(ip)
        except Exception:
            logger.error("Error in ip callback")


def _notify_message(msg):
    for cb in list(_message_callbacks):
        try:
            cb(msg)
        except Exception:
            logger.error("Error in message callback")


async def start_async_osc_server(
    addr: Optional[str] = None,
    port: Optional[int] = None,
    endpoint: Optional[str] = None,
    value_type: Optional[str] = None,
    debug: Optional[bool] = None,
):
    """Start the AsyncIO OSC UDP server on the caller's running event loop.

    Meant to be started with asyncio.create_task() from the Flet app's loop.
    Runs until cancelled, then closes the transport and notifies listeners.
    """
    logger.debug(
        "start_async_osc_server called with addr: %s, port: %s, endpoint: %s, value_type: %s, debug: %s",
        addr,
        port,
        endpoint,
        value_type,
        debug,
    )
    global server_transport, ip_str
    if addr is None:
        addr = _bind_address if _bind_address is not None else get_ip_address()
    if port is None:
        port = _bind_port
    if endpoint is None:
        endpoint = _bind_endpoint
    if value_type is None:
        value_type = _bind_value_type
    if debug is None:
        debug = _debug_mode

    disp = dispatcher.Dispatcher()
    disp.map(endpoint, _get_handler_for_value_type(value_type))
    if debug:
        logger.debug("Debug mode enabled: logging every incoming message")
        disp.set_default_handler(debug_handler)

    loop = asyncio.get_running_loop()
    loop_any: Any = loop
    server = AsyncIOOSCUDPServer((addr, port), disp, loop_any)
    transport, _ = await server.create_serve_endpoint()
    server_transport = transport
    logger.info(
        f"Async OSC server running on {addr}:{port}, endpoint {endpoint} ({value_type})"
    )
    _notify_status(True)

    ip_str = f"{addr}:{port}"
    _notify_ip(ip_str)

    try:
        # Run until cancelled
        while True:
            await asyncio.sleep(1.0)
    except asyncio.CancelledError:
        logger.info("OSC server task cancelled, cleaning up...")
        raise
    finally:
        if server_transport is not None:
            try:
                server_transport.close()
                logger.info("OSC server transport closed")
            except Exception:
                logger.error("Error while closing OSC transport")
            finally:
                server_transport = None
                ip_str = None
                _notify_status(False)
                _notify_ip("Server not running")


def get_ip_string() -> Optional[str]:
    return ip_str


def is_running() -> bool:
    """Return True if the OSC server transport is active."""
    return server_transport is not None
