"""Method catalogue for the terminal protocol.

Method names are ``Controller.action`` strings. The set is closed: every
request a terminal may send is a ``Method`` member, and every notification
the simulator emits on its own is a ``ServerNotification`` member.
"""

from __future__ import annotations

from enum import Enum


class Method(str, Enum):
    """All methods a terminal may invoke."""

    # Availability
    PING = "AvailabilityController.ping"
    AVAILABLE_TELLERS = "AvailabilityController.available_tellers"

    # Session
    CREATE_SESSION = "SessionController.create_session"
    REQUEST_HELP = "SessionController.request_help"
    CALL_INITIALIZED = "SessionController.call_initialized"
    REJOIN_CALL = "SessionController.rejoin_call"
    CLOSE_SESSION = "SessionController.close_session"

    # Terminal status
    UPDATE_TERMINAL_STATUS = "TerminalStatusController.update_terminal_status"

    # Actions
    ACTION_INIT = "ActionServices.action_init"
    COMMAND_START = "ActionServices.command_start"

    # Card reader
    READ_CARD = "CardReaderController.read_card"
    EJECT_CARD = "CardReaderController.eject_card"

    # Cash dispenser
    DISPENSE = "CashDispenserController.dispense"
    PRESENT = "CashDispenserController.present"
    RETRACT = "CashDispenserController.retract"

    # Signature pad
    REQUEST_SIGNATURE = "SignatureController.request_signature"
    CANCEL_REQUEST_SIGNATURE = "SignatureController.cancel_request_signature"

    # Transaction events
    CONFIRM_TRANSACTION = "TransactionEventsController.confirm_transaction"
    FULFILLMENT = "TransactionEventsController.fulfillment"

    # Electronic journal
    EJ_LOG = "EJController.ej_log"

    # Chat
    SEND_MESSAGE = "ChatController.send_message"

    @classmethod
    def parse(cls, name: str) -> Method | None:
        """Return the member for a wire name, or None if it is not in the catalogue."""
        try:
            return cls(name)
        except ValueError:
            return None


class ServerNotification(str, Enum):
    """Notifications emitted by the simulator itself."""

    CONNECTION_ESTABLISHED = "connection_established"
    CALL_ESTABLISHED = "SessionController.call_established"
    CALL_REESTABLISHED = "SessionController.call_reestablished"
    CALL_ENDED = "SessionController.call_ended"
    COMMAND_COMPLETE = "ActionServices.command_complete"
    CARD_READ = "CardReaderController.card_read"
    DISPENSE_COMPLETE = "CashDispenserController.dispense_complete"
    SIGNATURE_CAPTURED = "SignatureController.signature_captured"
    MESSAGE_RECEIVED = "ChatController.message_received"
