"""Degraded-mode answers used when the reasoning service is unreachable.

These are placeholders, not fabricated guarantees: they point the user in a
sensible direction until the service is back.
"""

from typing import Any

from deepthink.models.question import ExampleQuestion

NO_ANSWER = "Sorry, no answer could be retrieved."

# (keywords, answer) - first match wins
CANNED_ANSWERS: tuple[tuple[tuple[str, ...], str], ...] = (
    (
        ("gpio", "pin", "led", "output", "input"),
        "To use a GPIO pin: enable the port clock, set the pin mode (input, "
        "push-pull or open-drain output, alternate function), choose pull-up or "
        "pull-down if needed, then read or write the pin through the data registers "
        "or the HAL_GPIO_ReadPin / HAL_GPIO_WritePin helpers.",
    ),
    (
        ("pwm",),
        "For PWM, configure a timer channel in PWM mode: set the prescaler and "
        "auto-reload value for the frequency, the compare value for the duty cycle, "
        "map the channel pin to its alternate function and start the channel.",
    ),
    (
        ("timer", "tim"),
        "Timer setup: enable the timer clock, choose prescaler and period so that "
        "timer_clock / ((PSC + 1) * (ARR + 1)) gives the desired rate, enable the "
        "update interrupt if you need a callback, then start the counter.",
    ),
    (
        ("adc", "analog"),
        "For the ADC: enable the ADC and GPIO clocks, put the pin in analog mode, "
        "choose resolution and sampling time, calibrate if supported, then start a "
        "conversion and poll or wait for the end-of-conversion interrupt.",
    ),
    (
        ("dac",),
        "For the DAC: put the output pin in analog mode, enable the DAC channel, "
        "write the value to the data holding register and optionally drive it from "
        "a timer trigger with DMA for waveforms.",
    ),
    (
        ("uart", "serial", "usart", "baud"),
        "For UART: configure TX/RX pins as alternate function, set baud rate, word "
        "length, parity and stop bits, enable the peripheral, then transmit and "
        "receive in polling, interrupt or DMA mode. Check that both ends use the "
        "same baud rate.",
    ),
    (
        ("interrupt", "exti", "irq", "nvic"),
        "For interrupts: configure the source (e.g. EXTI line and edge), set the "
        "NVIC priority, enable the IRQ, and keep the handler short - clear the "
        "pending flag and defer heavy work to the main loop.",
    ),
    (
        ("dma",),
        "For DMA: pick the stream/channel mapped to the peripheral, set direction, "
        "addresses, data width and increment modes, enable the transfer-complete "
        "interrupt if needed, then link it to the peripheral request.",
    ),
    (
        ("lcd", "display"),
        "For an LCD: initialise the bus (parallel, SPI or I2C), follow the "
        "controller's power-up sequence and timing, then write commands and data "
        "through a small driver layer.",
    ),
    (
        ("i2c", "spi"),
        "For I2C/SPI: configure the pins as alternate function (I2C needs "
        "open-drain with pull-ups), set the clock speed and mode, then use the "
        "blocking transfer functions first before moving to interrupts or DMA.",
    ),
    (
        ("compile", "build", "error", "debug", "flash"),
        "For build or debug problems: read the first compiler error rather than "
        "the last, check include paths and startup files, and verify the debugger "
        "connection and target voltage before flashing again.",
    ),
)

DEFAULT_ANSWER = (
    "The assistant service is currently unavailable. Try breaking the question "
    "into smaller parts, check the experiment guide for this lab, and ask again "
    "in a moment."
)

ROLE_HINTS = {
    "student": "Tip: try it on the board step by step and compare with the lab guide.",
    "teacher": "Tip: this is a good point to demonstrate live in class.",
}

DEFAULT_EXAMPLE_QUESTIONS: dict[str, list[dict[str, Any]]] = {
    "student": [
        {"id": "s1", "text": "How do I configure a digital output pin?", "category": "gpio"},
        {"id": "s2", "text": "How do I generate a PWM signal with a timer?", "category": "timer"},
        {"id": "s3", "text": "How do I read an analog voltage with the ADC?", "category": "adc"},
        {"id": "s4", "text": "Why is my UART output garbled?", "category": "uart", "difficulty": "intermediate"},
    ],
    "teacher": [
        {"id": "t1", "text": "How should I introduce external interrupts to beginners?", "category": "teaching"},
        {"id": "t2", "text": "What are common mistakes students make with DMA?", "category": "dma", "difficulty": "intermediate"},
        {"id": "t3", "text": "How can I grade a timer experiment objectively?", "category": "assessment"},
    ],
    "admin": [
        {"id": "a1", "text": "Which experiments need hardware checks before the term?", "category": "operations"},
        {"id": "a2", "text": "How do I prepare lab machines for the toolchain?", "category": "operations"},
    ],
}


def keyword_fallback_answer(question: str, role: str) -> str:
    """Pick a canned answer by simple keyword match against the question."""
    lowered = question.lower()
    answer = DEFAULT_ANSWER
    for keywords, text in CANNED_ANSWERS:
        if any(keyword in lowered for keyword in keywords):
            answer = text
            break
    hint = ROLE_HINTS.get(role)
    return f"{answer}\n\n{hint}" if hint else answer


def extract_chat_response(body: dict[str, Any]) -> str:
    """Default transform for a chat response body ``{data: {response}}``."""
    data = body.get("data") if isinstance(body, dict) else None
    response = data.get("response") if isinstance(data, dict) else None
    return response if isinstance(response, str) and response else NO_ANSWER


def default_example_questions(user_role: str, limit: int) -> list[ExampleQuestion]:
    """Built-in example questions for a role (students' list for unknown roles)."""
    raw = DEFAULT_EXAMPLE_QUESTIONS.get(user_role, DEFAULT_EXAMPLE_QUESTIONS["student"])
    return [ExampleQuestion.model_validate(q) for q in raw[: max(0, limit)]]
