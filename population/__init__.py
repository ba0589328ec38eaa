from population.generator import (generate, excitatory_neurons, inhibitory_neurons,
                                  connectivity, connectivity_stats, fixed_trio,
                                  is_excitatory_mask)
