"""
Real-time preview window.

Opens a pygame window that pumps a TickDriver once per displayed frame
and draws the published output: a background flash driven by the beat
pulse and three band meters (smoothed level plus a raw-level tick).

Keyboard controls while previewing:
    ESC / Q      - quit
    SPACE        - stop / restart the session
"""

from __future__ import annotations

from pulsescope.core.engine import EngineOutput
from pulsescope.driver import ManualScheduler, TickDriver

BAND_COLORS = {
    "bass": (235, 80, 90),
    "mid": (90, 200, 120),
    "treble": (90, 150, 240),
}


def _flash_color(beat: float) -> tuple[int, int, int]:
    level = int(40 + 160 * max(0.0, min(1.0, beat)))
    return (level // 3, level // 4, level)


def run_preview(
    driver: TickDriver,
    fps: int = 60,
    size: tuple[int, int] = (480, 320),
    title: str = "Pulsescope Preview",
) -> None:
    """
    Display live band meters for ``driver`` until the window closes.

    The driver must use a ManualScheduler; it is started here and
    stopped on exit.

    Args:
        driver: Driver for the session to preview.
        fps: Target refresh rate.
        size: Window (width, height).
        title: Window title string.
    """
    if not isinstance(driver.scheduler, ManualScheduler):
        raise TypeError("run_preview() needs a driver with a ManualScheduler")

    import pygame

    pygame.init()
    screen = pygame.display.set_mode(size)
    pygame.display.set_caption(title)
    clock = pygame.time.Clock()
    font = pygame.font.SysFont(None, 22)

    w, h = size
    bar_w = w // 5
    gap = (w - 3 * bar_w) // 4

    def _draw(output: EngineOutput) -> None:
        screen.fill(_flash_color(output.beat))
        raw = (output.raw_bass, output.raw_mid, output.raw_treble)
        smoothed = (output.bass, output.mid, output.treble)

        for i, name in enumerate(BAND_COLORS):
            x = gap + i * (bar_w + gap)
            bar_h = int(smoothed[i] * (h - 60))
            pygame.draw.rect(screen, BAND_COLORS[name], (x, h - 30 - bar_h, bar_w, bar_h))
            raw_y = h - 30 - int(raw[i] * (h - 60))
            pygame.draw.line(screen, (240, 240, 240), (x, raw_y), (x + bar_w, raw_y), 2)
            label = font.render(name, True, (200, 200, 200))
            screen.blit(label, (x, h - 24))

        status = "running" if driver.is_running else "stopped  [SPACE=start]"
        overlay = font.render(
            f"beat {output.beat:.2f}  {status}  [ESC=quit]", True, (220, 220, 220)
        )
        screen.blit(overlay, (8, 8))

    driver.start()
    try:
        running = True
        while running:
            for event in pygame.event.get():
                if event.type == pygame.QUIT:
                    running = False
                elif event.type == pygame.KEYDOWN:
                    if event.key in (pygame.K_ESCAPE, pygame.K_q):
                        running = False
                    elif event.key == pygame.K_SPACE:
                        if driver.is_running:
                            driver.stop()
                        else:
                            driver.start()

            driver.scheduler.run_pending()
            _draw(driver.output)
            pygame.display.flip()
            clock.tick(fps)
    finally:
        driver.stop()
        pygame.quit()
