"""Column-oriented text files of complex sample streams.

Each line of a file holds one clock cycle; each cycle holds one sample per
stream as five integer columns: ``RST VLD OVF REAL IMAG``. The same format
is used to drive a simulation and to record what came out of it.
"""

import logging
import math
import re

from . import fixed
from .cplx import Cplx


logger = logging.getLogger(__name__)

_HEADER_TITLE = re.compile(r"^(.*?) 0(?:\s|$)")


class CplxStream:
    """A table of complex samples: rows are clock cycles, columns streams.

    Parameters
    ----------
    width : int
        Lane width of every sample, at least 4 bits.
    fmt : str
        ``"int"`` if the values given to :meth:`append_data` are integers,
        ``"frac"`` if they are fractions scaled by ``2**(width-1)``.
    title : str
        Optional title of at most 10 characters. A two-line header is
        written when it is set.

    Attributes
    ----------
    rows : list of list of Cplx
        The samples appended so far. Samples read back with undefined
        cells are ``None``.
    num_streams : int or None
        Number of streams; fixed by the first append.
    """

    def __init__(self, width, fmt="int", title=""):
        if not isinstance(width, int) or width < 4:
            raise ValueError(f"stream width must be at least 4, not {width!r}")
        if fmt not in ("int", "frac"):
            raise ValueError(f"unknown value format {fmt!r}")
        if len(title) > 10:
            raise ValueError(f"title {title!r} is longer than 10 characters")

        self.width = width
        self.fmt = fmt
        self.title = title
        self.rows = []
        self.num_streams = None

    def __len__(self):
        return len(self.rows)

    @property
    def digits(self):
        """Column width of each lane, sign included."""
        return len(str(1 << (self.width - 1))) + 1

    def _set_streams(self, streams):
        if self.num_streams is None:
            if streams is None:
                raise ValueError("number of streams is not known yet")
            if streams < 1:
                raise ValueError(f"need at least one stream, not {streams}")
            self.num_streams = streams
        elif streams is not None and streams != self.num_streams:
            raise ValueError(f"table has {self.num_streams} streams, not "
                             f"{streams}")
        return self.num_streams

    def append_reset(self, n, streams=None):
        """Append ``n`` cycles with ``rst`` asserted on every stream."""
        streams = self._set_streams(streams)
        for _ in range(n):
            self.rows.append([Cplx(0, 0, self.width, vld=False, rst=True)
                              for _ in range(streams)])

    def append_invalid(self, n, streams=None):
        """Append ``n`` idle cycles (``vld`` clear) on every stream."""
        streams = self._set_streams(streams)
        for _ in range(n):
            self.rows.append([Cplx(0, 0, self.width, vld=False)
                              for _ in range(streams)])

    def _quantize(self, x):
        if self.fmt == "frac":
            x = x * (1 << (self.width - 1))
        # Half away from zero.
        x = int(math.copysign(math.floor(abs(x) + 0.5), x))
        return fixed.saturate(x, self.width)

    def append_data(self, rows, vld=None):
        """Append one cycle per entry of ``rows``.

        Parameters
        ----------
        rows : iterable of iterable of complex
            One value per stream and cycle. Values are rounded half away
            from zero and clipped to the lane width; clipped samples have
            ``ovf`` set.
        vld : iterable of bool, optional
            Valid flag per cycle; all cycles are valid by default.
        """
        rows = [list(r) for r in rows]
        if vld is None:
            vld = [True] * len(rows)
        else:
            vld = list(vld)
            if len(vld) != len(rows):
                raise ValueError(f"got {len(vld)} valid flags for "
                                 f"{len(rows)} cycles")

        for (row, v) in zip(rows, vld):
            self._set_streams(len(row))
            samples = []
            for x in row:
                x = complex(x)
                (re_, re_clip) = self._quantize(x.real)
                (im_, im_clip) = self._quantize(x.imag)
                samples.append(Cplx(re_, im_, self.width, vld=bool(v),
                                    ovf=re_clip or im_clip))
            self.rows.append(samples)

    def samples(self, stream):
        """All samples of one stream, in cycle order."""
        if self.num_streams is None or not 0 <= stream < self.num_streams:
            raise IndexError(f"no stream {stream}")
        return [row[stream] for row in self.rows]

    def count_undefined(self, stream=None):
        """Number of undefined samples, in one stream or in all of them."""
        if stream is None:
            return sum(row.count(None) for row in self.rows)
        return self.samples(stream).count(None)

    def _header(self):
        d = self.digits
        field = 15 + 2 * d
        first = "".join(f"{self.title} {i}".ljust(field)
                        for i in range(self.num_streams))
        second = f"RST VLD OVF {'REAL':>{d}} {'IMAG':>{d}}  " * \
            self.num_streams
        return [first.rstrip(), second.rstrip()]

    def lines(self):
        """The table as text lines, header included."""
        d = self.digits
        lines = self._header() if self.title and self.num_streams else []
        undefined = f"{'X':>3}{'X':>4}{'X':>4} {'X':>{d}} {'X':>{d}}  "
        for row in self.rows:
            lines.append("".join(undefined if s is None else
                                 f"{int(s.rst):3d}{int(s.vld):4d}"
                                 f"{int(s.ovf):4d} {s.re:{d}d} {s.im:{d}d}  "
                                 for s in row).rstrip())
        return lines

    def write(self, path):
        """Write the table to ``path``."""
        with open(path, "w") as fp:
            for line in self.lines():
                fp.write(line + "\n")
        logger.debug("wrote %d cycles of %d streams to %s", len(self.rows),
                     self.num_streams or 0, path)

    @classmethod
    def read(cls, path, width=None):
        """Read a table written by :meth:`write` (or by a simulation).

        The two header lines are only recognized at the top of the file,
        the second one starting with ``RST``. Every later line is a cycle.
        A sample with any cell that is not an integer (e.g. ``X`` or ``U``
        from a simulator) is kept as ``None``; see :meth:`count_undefined`.

        Parameters
        ----------
        path : str or os.PathLike
            File to read.
        width : int, optional
            Lane width. Defaults to the smallest width (at least 4) that
            holds every value in the file.

        Returns
        -------
        CplxStream
            The table, in ``"int"`` format.

        Raises
        ------
        ValueError
            If a cycle does not have five columns per stream, or the
            streams per cycle change.
        """
        with open(path) as fp:
            lines = [(lineno, line) for (lineno, line) in enumerate(fp, 1)
                     if line.split()]

        title = ""
        start = 0
        for (i, (_, line)) in enumerate(lines[:2]):
            if line.split()[0] == "RST":
                if i == 1:
                    m = _HEADER_TITLE.match(lines[0][1])
                    if m:
                        title = m.group(1)
                start = i + 1
                break

        data = []
        for (lineno, line) in lines[start:]:
            fields = line.split()
            if len(fields) % 5:
                raise ValueError(f"{path}:{lineno}: expected 5 columns "
                                 f"per stream, got {len(fields)}")
            row = []
            for i in range(0, len(fields), 5):
                try:
                    row.append([int(f) for f in fields[i:i + 5]])
                except ValueError:
                    row.append(None)
            data.append((lineno, row))

        if width is None:
            width = 4
            for (_, row) in data:
                for values in filter(None, row):
                    for v in values[3:]:
                        need = (v if v >= 0 else ~v).bit_length() + 1
                        width = max(width, need)

        table = cls(width, title=title)
        for (lineno, row) in data:
            if table.num_streams is not None and \
                    len(row) != table.num_streams:
                raise ValueError(f"{path}:{lineno}: expected "
                                 f"{table.num_streams} streams, got "
                                 f"{len(row)}")
            table._set_streams(len(row))
            table.rows.append([
                None if values is None else
                Cplx(values[3], values[4], width, rst=bool(values[0]),
                     vld=bool(values[1]), ovf=bool(values[2]))
                for values in row])

        undefined = table.count_undefined()
        if undefined:
            logger.warning("%s: %d undefined samples", path, undefined)
        logger.debug("read %d cycles of %d-bit samples from %s", len(data),
                     width, path)
        return table
