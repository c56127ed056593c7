from __future__ import annotations

import sys
from pathlib import Path

import pyaudio

# Add project root to path
sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from wakelink.audio.capture import list_input_devices


def main() -> None:
    pa = pyaudio.PyAudio()
    try:
        print("Input devices (use a name as audio.device_input):")
        for name in list_input_devices(pa):
            print(f"  {name}")
    finally:
        pa.terminate()


if __name__ == "__main__":
    main()
