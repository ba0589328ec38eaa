from analysis.spike_analysis import (spike_counts, mean_firing_rate, population_rate,
                                     dominant_frequency, participation_fraction, summarize)
