"""Echo operation served to probing clients."""

from common.encoding import Codec, Echo, Message
from session.dispatch import Dispatcher, RpcError

ECHO_METHOD = "Echo.Echo"


def echo(args: Message) -> Echo:
    """Return the payload unchanged."""
    if not isinstance(args, Echo):
        raise RpcError(f"Echo expects an Echo payload, got {type(args).__name__}")
    return Echo(timestamp=args.timestamp)


def new_dispatcher(codec: Codec) -> Dispatcher:
    """Build a dispatcher serving the Echo operation."""
    dispatcher = Dispatcher(codec)
    dispatcher.register(ECHO_METHOD, echo)
    return dispatcher
