# =========================
# CalcBot v1: Engine (message-in / text-out state machine)
# =========================
# Public API:
#   - class StateAdapter (interface), class InMemoryAdapter (simple impl)
#   - class CalcBotEngine(store).handle(conversation_id, message) -> str
#   - classify_input(text) -> ParsedInput
#   - parse_number_list(payload) -> list of numbers
#   - compute(numbers, operator) -> number or error text
#
# Notes:
#   * All user-facing strings and params are defined at the top (constants).
#   * One input in, exactly one reply out; the reply is plain text.
#   * /start and stop replace the conversation state with a fresh object.
#   * Unrecognized input never changes the stage.
#   * Parser errors are exceptions; handlers turn them into replies.

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Union
import logging
import math

logger = logging.getLogger(__name__)

Number = Union[int, float]

# =========================
# CONSTANTS (UX strings, command tokens, typing delay)
# =========================

CMD_START = "/start"
CMD_STOP = "stop"
CMD_PREFIX = "/"
PREFIX_NAME = "name:"
PREFIX_NUMBER = "number:"
OPERATORS: List[str] = ["+", "-", "*", "/"]
NUMBER_SEPARATOR = ","

# Numeric limits: ints beyond 2**53 lose exactness as floats, floats past 1e16
# print in exponent form
MAX_EXACT_INT = 2 ** 53
MAX_INT_DIGITS = 16
MAX_PLAIN_FLOAT = 1e16

# Presentation strings
MSG_WELCOME = "Чтобы начать, введите команду /start"
MSG_GREETING = "Привет, меня зовут Чат-бот, а как зовут тебя?"
MSG_CHOOSE_OPERATOR = "Выберите действие: -, +, *, / (введите символ операции)"
MSG_FAREWELL = "Всего доброго, если хочешь поговорить пиши /start"
MSG_UNRECOGNIZED = "Я не понимаю, введите другую команду!"
ERR_NAME_EMPTY = "Пожалуйста укажите имя в формате: /name: Вася"
ERR_START_FIRST = "Введите команду /start, для начала общения"
ERR_NUMBERS_EMPTY = "Укажите числа после /number: например /number: 7, 9"
ERR_NUMBERS_FIRST = "Сначала введите числа командой /number: ..."
ERR_NUMBERS_NOT_SET = "Числа не заданы. Введите их командой /number: 7, 9"
ERR_DIVISION_BY_ZERO = "Ошибка: деление на 0"
ERR_OPERATION = "Ошибка операции"
TPL_NAME_ACCEPTED = (
    "Привет {name}, приятно познакомится. "
    "Я умею считать, введи числа которые надо посчитать"
)
TPL_INVALID_NUMBER = 'Неправильное число: "{segment}". Введите числа через запятую.'
TPL_RESULT = "Результат: {result}"

# Typing simulation (milliseconds): min(base + len * per_char, max)
TYPING_BASE_MS = 1200
TYPING_PER_CHAR_MS = 20
TYPING_MAX_MS = 2200


# =========================
# Errors
# =========================

class CalcBotError(ValueError):
    """Base for input problems that are answered with a reply, never raised to callers."""

class EmptyPayload(CalcBotError):
    pass

class InvalidNumber(CalcBotError):
    def __init__(self, segment: str):
        super().__init__(segment)
        self.segment = segment

class WrongStage(CalcBotError):
    def __init__(self, reply: str):
        super().__init__(reply)
        self.reply = reply


# =========================
# State (Stage enum + per-conversation dataclass)
# =========================

class Stage(Enum):
    AWAITING_START = "awaiting_start"
    ASKED_NAME = "asked_name"
    AWAITING_NUMBERS = "awaiting_numbers"
    AWAITING_OPERATOR = "awaiting_operator"
    STOPPED = "stopped"

@dataclass
class ConversationState:
    stage: Stage = Stage.AWAITING_START
    name: Optional[str] = None
    numbers: List[Number] = field(default_factory=list)
    last_operator: Optional[str] = None  # recorded, not read back


# =========================
# State Adapter interface
# =========================

class StateAdapter:
    """Abstract persistence adapter."""
    def load(self, conversation_id: str) -> Optional[ConversationState]:
        raise NotImplementedError
    def save(self, conversation_id: str, state: ConversationState) -> None:
        raise NotImplementedError

class InMemoryAdapter(StateAdapter):
    def __init__(self):
        self._store: Dict[str, ConversationState] = {}
    def load(self, conversation_id: str) -> Optional[ConversationState]:
        return self._store.get(conversation_id)
    def save(self, conversation_id: str, state: ConversationState) -> None:
        self._store[conversation_id] = state


# =========================
# Parser: classification and number lists
# =========================

class InputKind(Enum):
    START = "start"
    NAME = "name"
    NUMBERS = "numbers"
    OPERATOR = "operator"
    STOP = "stop"
    UNRECOGNIZED = "unrecognized"

@dataclass
class ParsedInput:
    kind: InputKind
    payload: str = ""

def _strip_prefix(text: str) -> str:
    """Drop one optional leading slash and the whitespace after it."""
    if text.startswith(CMD_PREFIX):
        return text[len(CMD_PREFIX):].strip()
    return text

def classify_input(text: str) -> ParsedInput:
    """Classify one raw line into exactly one input kind."""
    cmd = (text or "").strip()
    if cmd == CMD_START:
        return ParsedInput(InputKind.START)
    # A lone "/" is division, not an empty command
    if cmd in OPERATORS:
        return ParsedInput(InputKind.OPERATOR, cmd)
    bare = _strip_prefix(cmd)
    low = bare.lower()
    if low.startswith(PREFIX_NAME):
        return ParsedInput(InputKind.NAME, bare[len(PREFIX_NAME):].strip())
    if low.startswith(PREFIX_NUMBER):
        return ParsedInput(InputKind.NUMBERS, bare[len(PREFIX_NUMBER):].strip())
    if bare in OPERATORS:
        return ParsedInput(InputKind.OPERATOR, bare)
    if bare == CMD_STOP:
        return ParsedInput(InputKind.STOP)
    return ParsedInput(InputKind.UNRECOGNIZED, cmd)

def is_int_token(tok: str) -> bool:
    if tok.startswith(("+", "-")):
        tok = tok[1:]
    return tok.isascii() and tok.isdigit()

def parse_number(tok: str) -> Number:
    """Integers stay int while a float holds them exactly; everything else is float."""
    if is_int_token(tok) and len(tok) <= MAX_INT_DIGITS:
        val = int(tok)
        if abs(val) <= MAX_EXACT_INT:
            return val
    if "_" in tok:
        raise InvalidNumber(tok)
    try:
        val = float(tok)
    except ValueError:
        raise InvalidNumber(tok) from None
    if math.isnan(val):
        raise InvalidNumber(tok)
    return val

def parse_number_list(payload: str) -> List[Number]:
    """Split on commas and parse every segment; all or nothing."""
    parts = [p.strip() for p in (payload or "").split(NUMBER_SEPARATOR)]
    parts = [p for p in parts if p]
    if not parts:
        raise EmptyPayload(PREFIX_NUMBER)
    return [parse_number(p) for p in parts]


# =========================
# Arithmetic
# =========================

def _bounded(acc: Number) -> Number:
    # Past the exact range an int product would only grow; continue in float
    if isinstance(acc, int) and abs(acc) > MAX_EXACT_INT:
        return float(acc)
    return acc

def compute(numbers: List[Number], operator: str) -> Union[Number, str]:
    """Left-fold the numbers with the operator.

    Division stops at the first zero divisor and returns ERR_DIVISION_BY_ZERO
    as the result. An empty list is never passed in. Operands come from
    parse_number, so int operands never exceed MAX_EXACT_INT and float
    overflow ends in inf rather than an exception.
    """
    if operator == "+":
        acc: Number = 0
        for n in numbers:
            acc = acc + n
        return acc
    if operator == "*":
        acc = 1
        for n in numbers:
            acc = _bounded(acc * n)
        return acc
    if operator == "-":
        acc = numbers[0]
        for n in numbers[1:]:
            acc = acc - n
        return acc
    if operator == "/":
        acc = numbers[0]
        for n in numbers[1:]:
            if n == 0:
                return ERR_DIVISION_BY_ZERO
            acc = acc / n
        return acc
    return ERR_OPERATION

def format_result(value: Union[Number, str]) -> str:
    if isinstance(value, float):
        if math.isnan(value):
            return "NaN"
        if math.isinf(value):
            return "Infinity" if value > 0 else "-Infinity"
        if value.is_integer() and abs(value) < MAX_PLAIN_FLOAT:
            return str(int(value))
    return str(value)


# =========================
# Context helper (wraps state; replaced wholesale on /start and stop)
# =========================

class Context:
    def __init__(self, state: Optional[ConversationState]):
        self.state = state if state is not None else ConversationState()

    @property
    def stage(self) -> Stage:
        return self.state.stage

    def require(self, *stages: Stage, reply: str) -> None:
        if self.state.stage not in stages:
            raise WrongStage(reply)

    def reset(self, stage: Stage) -> None:
        self.state = ConversationState(stage=stage)


# =========================
# Handlers (one per input kind)
# =========================

def handle_start(ctx: Context, payload: str) -> str:
    ctx.reset(Stage.ASKED_NAME)
    return MSG_GREETING

def handle_name(ctx: Context, payload: str) -> str:
    try:
        ctx.require(Stage.ASKED_NAME, Stage.AWAITING_START, reply=ERR_START_FIRST)
    except WrongStage as e:
        return e.reply
    if not payload:
        return ERR_NAME_EMPTY
    ctx.state.name = payload
    ctx.state.stage = Stage.AWAITING_NUMBERS
    return TPL_NAME_ACCEPTED.format(name=payload)

def handle_numbers(ctx: Context, payload: str) -> str:
    try:
        ctx.require(Stage.AWAITING_NUMBERS, Stage.AWAITING_OPERATOR, reply=ERR_START_FIRST)
        nums = parse_number_list(payload)
    except WrongStage as e:
        return e.reply
    except EmptyPayload:
        return ERR_NUMBERS_EMPTY
    except InvalidNumber as e:
        return TPL_INVALID_NUMBER.format(segment=e.segment)
    ctx.state.numbers = nums
    ctx.state.stage = Stage.AWAITING_OPERATOR
    return MSG_CHOOSE_OPERATOR

def handle_operator(ctx: Context, payload: str) -> str:
    try:
        ctx.require(Stage.AWAITING_OPERATOR, reply=ERR_NUMBERS_FIRST)
    except WrongStage as e:
        return e.reply
    if not ctx.state.numbers:
        return ERR_NUMBERS_NOT_SET
    result = compute(ctx.state.numbers, payload)
    ctx.state.last_operator = payload
    ctx.state.stage = Stage.AWAITING_NUMBERS
    if isinstance(result, str):
        return result
    return TPL_RESULT.format(result=format_result(result))

def handle_stop(ctx: Context, payload: str) -> str:
    ctx.reset(Stage.STOPPED)
    return MSG_FAREWELL

def handle_unrecognized(ctx: Context, payload: str) -> str:
    return MSG_UNRECOGNIZED


# =========================
# Engine
# =========================

class CalcBotEngine:
    def __init__(self, store: Optional[StateAdapter] = None):
        self.store = store if store is not None else InMemoryAdapter()
        # Build router map
        self.handlers: Dict[InputKind, Callable[[Context, str], str]] = {
            InputKind.START: handle_start,
            InputKind.NAME: handle_name,
            InputKind.NUMBERS: handle_numbers,
            InputKind.OPERATOR: handle_operator,
            InputKind.STOP: handle_stop,
            InputKind.UNRECOGNIZED: handle_unrecognized,
        }

    def state(self, conversation_id: str) -> ConversationState:
        return self.store.load(conversation_id) or ConversationState()

    def handle(self, conversation_id: str, message: str) -> str:
        ctx = Context(self.store.load(conversation_id))
        parsed = classify_input(message)

        # A stopped conversation only answers /start and stop
        if ctx.stage is Stage.STOPPED and parsed.kind not in (InputKind.START, InputKind.STOP):
            handler = handle_unrecognized
        else:
            handler = self.handlers[parsed.kind]

        before = ctx.stage
        out = handler(ctx, parsed.payload)
        logger.debug(
            "conversation %s: %s %s -> %s",
            conversation_id, parsed.kind.value, before.value, ctx.stage.value,
        )
        self.store.save(conversation_id, ctx.state)
        return out
