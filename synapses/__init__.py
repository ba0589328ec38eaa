from synapses.connection_input import (connection_input, connection_input_rows,
                                       parallel_connection_input, row_blocks)
