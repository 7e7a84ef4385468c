import argparse

import boto3

from product_fanout.publish import publish_test_message, topic_arn


def main():
    parser = argparse.ArgumentParser(description="Publish the hello_world product to the new product topic.")
    parser.add_argument("--topic-arn", help="defaults to new_product_topic in the current account and region")
    args = parser.parse_args()

    session = boto3.Session()
    arn = args.topic_arn or topic_arn(session)
    message_id = publish_test_message(session.client("sns"), arn)
    print(f"Published {message_id} to {arn}")


if __name__ == "__main__":
    main()
