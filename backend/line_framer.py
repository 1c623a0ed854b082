import codecs
from typing import List, Union


class LineFramer:
    """Incremental newline framer for the host's stdout stream.

    `feed()` returns only complete lines; a partial trailing line stays
    buffered until the chunk that finishes it arrives. Bytes are decoded
    incrementally so a UTF-8 sequence split across chunks is not mangled.
    """

    def __init__(self, encoding: str = "utf-8") -> None:
        self._decoder = codecs.getincrementaldecoder(encoding)(errors="replace")
        self._buffer = ""

    @property
    def pending(self) -> str:
        return self._buffer

    def feed(self, chunk: Union[bytes, str]) -> List[str]:
        if isinstance(chunk, bytes):
            chunk = self._decoder.decode(chunk)
        self._buffer += chunk

        lines: List[str] = []
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            line = line.rstrip("\r")
            if line.strip():
                lines.append(line)
        return lines

    def reset(self) -> None:
        self._decoder.reset()
        self._buffer = ""
