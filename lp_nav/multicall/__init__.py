from .batcher import Call, CallResult, MulticallBatcher, chunk_calls
