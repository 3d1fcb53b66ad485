import io
import zlib

import pytest

from spritepack.kernel import tree
from spritepack.kernel.chunk import (
    MAX_CHUNK_SIZE,
    PNG_SIGNATURE,
    ChunkFormatError,
    mktag,
    read_chunks,
    write_chunks,
)
from spritepack.kernel.stream import ChunkReader, ChunkWriter


def tags(chunks):
    return [chunk.tag for chunk in chunks]


class TestChunk:
    def test_mktag_layout(self):
        chunk = mktag('fsCT', b'abc')
        crc = zlib.crc32(b'fsCTabc').to_bytes(4, 'big')
        assert bytes(chunk) == b'\x00\x00\x00\x03fsCTabc' + crc
        assert len(chunk) == 3
        assert not chunk.critical
        assert chunk.private

    def test_invalid_tag(self):
        with pytest.raises(ChunkFormatError, match='invalid chunk tag'):
            mktag('ab1!', b'')

    def test_read_encoded_png(self, sample_png):
        chunks = [chunk for _, chunk in read_chunks(sample_png)]
        assert tags(chunks)[:3] == ['IHDR', 'PLTE', 'tRNS']
        assert tags(chunks)[-1] == 'IEND'
        assert write_chunks(chunks) == sample_png

    def test_offsets(self, sample_png):
        offsets = [offset for offset, _ in read_chunks(sample_png)]
        assert offsets[0] == len(PNG_SIGNATURE)
        # IHDR: 4 size + 4 tag + 13 payload + 4 crc
        assert offsets[1] == len(PNG_SIGNATURE) + 25

    def test_crc_mismatch(self, sample_png):
        corrupt = bytearray(sample_png)
        corrupt[20] ^= 0xFF  # inside IHDR payload
        with pytest.raises(ChunkFormatError, match='crc mismatch'):
            list(read_chunks(bytes(corrupt)))

    def test_missing_signature(self, sample_png):
        with pytest.raises(ChunkFormatError, match='signature'):
            list(read_chunks(sample_png[1:]))

    def test_length_out_of_range(self):
        data = PNG_SIGNATURE + b'\xff\xff\xff\xffIDAT' + bytes(16)
        with pytest.raises(ChunkFormatError, match='length out of range'):
            list(read_chunks(data))


class TestStream:
    def test_reader_matches_buffer(self, sample_png):
        streamed = list(ChunkReader(io.BytesIO(sample_png)))
        buffered = [chunk for _, chunk in read_chunks(sample_png)]
        assert [bytes(chunk) for chunk in streamed] == [
            bytes(chunk) for chunk in buffered
        ]

    def test_end_of_stream_on_boundary(self):
        assert list(ChunkReader(io.BytesIO(PNG_SIGNATURE))) == []

    @pytest.mark.parametrize('cut', [3, 10, 23])
    def test_truncated_stream(self, sample_png, cut):
        # cut inside the first chunk header, its payload and its crc
        data = sample_png[: len(PNG_SIGNATURE) + cut]
        with pytest.raises(ChunkFormatError, match='truncated'):
            list(ChunkReader(io.BytesIO(data)))

    def test_bad_tag(self):
        data = PNG_SIGNATURE + b'\x00\x00\x00\x00IH\x00R' + bytes(4)
        with pytest.raises(ChunkFormatError, match='invalid chunk tag'):
            list(ChunkReader(io.BytesIO(data)))

    def test_length_out_of_range(self):
        class Recording(io.BytesIO):
            def __init__(self, data):
                super().__init__(data)
                self.requests = []

            def read(self, size=-1):
                self.requests.append(size)
                return super().read(size)

        stream = Recording(PNG_SIGNATURE + b'\xff\xff\xff\xffIDAT')
        reader = ChunkReader(stream)
        with pytest.raises(ChunkFormatError, match='length out of range'):
            reader.next_chunk()
        assert max(stream.requests) <= MAX_CHUNK_SIZE

    def test_largest_length_is_only_truncated(self):
        data = PNG_SIGNATURE + b'\x7f\xff\xff\xffIDAT' + bytes(8)
        with pytest.raises(ChunkFormatError, match='truncated'):
            list(ChunkReader(io.BytesIO(data)))

    def test_empty_stream(self):
        with pytest.raises(ChunkFormatError, match='signature'):
            ChunkReader(io.BytesIO(b''))

    def test_short_reads(self, sample_png):
        class Trickle(io.RawIOBase):
            def __init__(self, data):
                self.data = io.BytesIO(data)

            def readable(self):
                return True

            def read(self, size=-1):
                return self.data.read(min(size, 3))

        chunks = list(ChunkReader(Trickle(sample_png)))
        assert tags(chunks)[-1] == 'IEND'

    def test_writer_recomputes_crc(self):
        sink = io.BytesIO()
        ChunkWriter(sink).write_chunk(mktag('tEXt', b'k\x00v'))
        chunk = next(iter(ChunkReader(io.BytesIO(sink.getvalue()))))
        assert chunk.tag == 'tEXt'
        assert bytes(chunk.data) == b'k\x00v'


class TestTree:
    def test_find_patterns(self, sample_png):
        chunks = [chunk for _, chunk in read_chunks(sample_png)]
        assert tree.find('tRNS', chunks).tag == 'tRNS'
        assert tree.find('trns', chunks) is None
        assert tags(tree.findall('I{}', chunks))[0] == 'IHDR'

    def test_renders(self, sample_png):
        text = tree.renders(read_chunks(sample_png))
        assert text.splitlines()[0].startswith('<IHDR offset="8" size="13"')
