from streaming.channel import Channel, ChannelClosed, StepChannels
from streaming.consumer import HistoryConsumer
