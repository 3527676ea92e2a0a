"""
Simple OSC sender to feed the Streaming Graph with synthetic frequency samples.
Usage:
    python send_osc.py --host 127.0.0.1 --port 9000 --rate 5 --count 50 [--timestamped]

Sends `count` messages at `rate` messages per second to the address /frequency.
With --timestamped each message carries (epoch seconds, frequency), slightly
backdated at random so some samples arrive out of order.
Requires `python-osc`.
"""
import argparse
import asyncio
import random
import time
from pythonosc import udp_client

async def run(host, port, endpoint, rate, count, timestamped):
    client = udp_client.SimpleUDPClient(host, port)
    delay = 1.0 / rate if rate > 0 else 0.1
    for i in range(count):
        frequency = random.randint(1, 20)
        if timestamped:
            stamp = time.time() - random.uniform(0.0, 0.5)
            client.send_message(endpoint, [stamp, frequency])
            print(f"sent: t={stamp:.3f} f={frequency}")
        else:
            client.send_message(endpoint, frequency)
            print(f"sent: f={frequency}")
        await asyncio.sleep(delay)

if __name__ == '__main__':
    parser = argparse.ArgumentParser()
    parser.add_argument('--host', default='127.0.0.1')
    parser.add_argument('--port', type=int, default=9000)
    parser.add_argument('--endpoint', default='/frequency')
    parser.add_argument('--rate', type=float, default=2.0)
    parser.add_argument('--count', type=int, default=50)
    parser.add_argument('--timestamped', action='store_true')
    args = parser.parse_args()
    asyncio.run(run(args.host, args.port, args.endpoint, args.rate, args.count, args.timestamped))
