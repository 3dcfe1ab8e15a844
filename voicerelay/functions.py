"""Function call dispatching for the realtime AI session.

The AI may ask the relay to perform a side effect by emitting a function
call in a response's output. The dispatcher:
1. Looks up the handler registered for the function name
2. Decodes the JSON-encoded arguments into a flat string mapping
3. Runs the handler (which may call out to a webhook)
4. On success, sends the completion item and a ``response.create`` trigger
   back to the AI so the conversation continues

Functions are registered with the JSON schema advertised to the AI in the
``session.update`` handshake:
{
    "type": "function",
    "name": "setup_schedule",
    "description": "Setup business meeting schedule",
    "parameters": {"type": "object", "properties": {...}, "required": [...]}
}
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from loguru import logger

from voicerelay.core.events import FunctionArgumentsError, FunctionCallRequest
from voicerelay.serializers.openai_realtime import RealtimeSerializer
from voicerelay.session import CallSession
from voicerelay.webhook import ScheduleRequest, WebhookClient, WebhookError

# A handler receives the session and decoded arguments, and returns the
# output text reported back to the AI.
FunctionHandler = Callable[[CallSession, dict[str, str]], Awaitable[str]]

SETUP_SCHEDULE = "setup_schedule"
SCHEDULE_SUCCESS_MESSAGE = "Your schedule has been set successfully!"

SETUP_SCHEDULE_PARAMETERS: dict[str, Any] = {
    "type": "object",
    "properties": {
        "name": {
            "type": "string",
            "description": "Please tell me your name",
        },
        "email": {
            "format": "email",
            "type": "string",
            "description": "please provide your email address",
        },
        "datetime": {
            "type": "string",
            "format": "date-time",
            "description": "Please provide the date and time of the meeting",
        },
        "description": {
            "type": "string",
            "description": "what is the purpose of the meeting?",
        },
    },
    "required": ["name", "email", "description"],
}


@dataclass
class RegisteredFunction:
    name: str
    description: str
    parameters: dict[str, Any]
    handler: FunctionHandler

    def tool_definition(self) -> dict[str, Any]:
        """Tool schema in the realtime session format."""
        return {
            "type": "function",
            "name": self.name,
            "description": self.description,
            "parameters": self.parameters,
        }


class FunctionDispatcher:
    """Routes AI function calls to registered handlers.

    The registry is filled at startup and only read afterwards, so one
    dispatcher is shared by every session.
    """

    def __init__(self, serializer: RealtimeSerializer | None = None) -> None:
        self._functions: dict[str, RegisteredFunction] = {}
        self._serializer = serializer or RealtimeSerializer()

    def register(
        self,
        name: str,
        description: str,
        parameters: dict[str, Any],
        handler: FunctionHandler,
    ) -> None:
        """Register a function the AI may call."""
        self._functions[name] = RegisteredFunction(
            name=name,
            description=description,
            parameters=parameters,
            handler=handler,
        )
        logger.debug(f"Registered function: {name}")

    def handles(self, name: str) -> bool:
        return name in self._functions

    @property
    def tool_definitions(self) -> list[dict[str, Any]]:
        """Schemas of all registered functions, for ``session.update``."""
        return [f.tool_definition() for f in self._functions.values()]

    async def dispatch(self, session: CallSession, request: FunctionCallRequest) -> bool:
        """Run one function call and report completion to the AI.

        Returns True when the completion was sent. Argument decode errors
        and webhook failures abandon the call: they are logged and no
        completion event is sent.
        """
        function = self._functions.get(request.name)
        if function is None:
            logger.warning(f"No handler registered for function: {request.name}")
            return False

        try:
            arguments = request.parse_arguments()
        except FunctionArgumentsError as e:
            logger.error(f"Error parsing function arguments: {e}")
            return False

        logger.info(
            f"Function call {request.name} (call_id={request.call_id}) "
            f"on session {session.session_id}"
        )

        try:
            output = await function.handler(session, arguments)
        except WebhookError as e:
            logger.error(f"Error running {request.name}: {e}")
            return False

        session.function_calls += 1
        await self._send(
            session, self._serializer.build_function_call_output(request.call_id, output)
        )
        await self._send(session, self._serializer.build_response_create())
        return True

    @staticmethod
    async def _send(session: CallSession, message: str) -> None:
        if session.ai_transport is None:
            logger.error(f"Session {session.session_id} has no AI transport")
            return
        try:
            await session.ai_transport.send(message)
        except Exception as e:
            logger.error(f"Error sending function result to AI: {e}")


def setup_schedule_handler(webhook: WebhookClient) -> FunctionHandler:
    """Build the ``setup_schedule`` handler posting to ``webhook``."""

    async def setup_schedule(session: CallSession, arguments: dict[str, str]) -> str:
        request = ScheduleRequest(
            name=arguments.get("name", ""),
            email=arguments.get("email", ""),
            datetime=arguments.get("datetime", ""),
            description=arguments.get("description", ""),
            phone_number=session.phone_number,
        )
        await webhook.post_schedule(request)
        return SCHEDULE_SUCCESS_MESSAGE

    return setup_schedule


def create_dispatcher(
    webhook: WebhookClient,
    serializer: RealtimeSerializer | None = None,
) -> FunctionDispatcher:
    """Create a dispatcher with the built-in functions registered."""
    dispatcher = FunctionDispatcher(serializer)
    dispatcher.register(
        SETUP_SCHEDULE,
        "Setup business meeting schedule",
        SETUP_SCHEDULE_PARAMETERS,
        setup_schedule_handler(webhook),
    )
    return dispatcher
